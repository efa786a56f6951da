"""
Assessment System Configuration
Sandbox URLs, limits and grading settings
"""

import os

# Storage
MONGO_URL = os.getenv("MONGO_URL", "mongodb://localhost:27017")
MONGO_DB_NAME = os.getenv("MONGO_DB_NAME", "codejudge_db")

# Remote execution sandbox (JDoodle compatible)
JUDGE_API_URL = os.getenv("JUDGE_API_URL", "https://api.jdoodle.com/v1/execute")
JUDGE_CLIENT_ID = os.getenv("JDOODLE_CLIENT_ID", "")
JUDGE_CLIENT_SECRET = os.getenv("JDOODLE_CLIENT_SECRET", "")

# Judge retry / timeout settings
JUDGE_REQUEST_TIMEOUT_SECONDS = float(os.getenv("JUDGE_REQUEST_TIMEOUT_SECONDS", "20"))
JUDGE_MAX_ATTEMPTS = int(os.getenv("JUDGE_MAX_ATTEMPTS", "3"))
JUDGE_BACKOFF_BASE_SECONDS = float(os.getenv("JUDGE_BACKOFF_BASE_SECONDS", "0.5"))
JUDGE_BACKOFF_CAP_SECONDS = float(os.getenv("JUDGE_BACKOFF_CAP_SECONDS", "8"))

# Process-wide ceiling on in-flight sandbox calls
JUDGE_MAX_CONCURRENCY = int(os.getenv("JUDGE_MAX_CONCURRENCY", "8"))

# Grading
GRADER_MAX_WORKERS = int(os.getenv("GRADER_MAX_WORKERS", "4"))
GRADING_DEADLINE_SECONDS = float(os.getenv("GRADING_DEADLINE_SECONDS", "120"))

# Platform defaults when a challenge does not set its own limits
DEFAULT_TIME_LIMIT_SECONDS = float(os.getenv("DEFAULT_TIME_LIMIT_SECONDS", "5"))
DEFAULT_MEMORY_LIMIT_MB = int(os.getenv("DEFAULT_MEMORY_LIMIT_MB", "256"))

# Platform language -> (sandbox language, version index)
LANGUAGE_VERSIONS = {
    "javascript": ("nodejs", "4"),
    "typescript": ("nodejs", "4"),
    "python": ("python3", "4"),
    "java": ("java", "4"),
    "cpp": ("cpp17", "1"),
    "go": ("go", "4"),
    "rust": ("rust", "4"),
}

# Printed by the sandbox when it kills a program for running too long
SANDBOX_TIMEOUT_MARKER = "JDoodle - Timeout"

# Auth
JWT_SECRET_KEY = os.getenv("JWT_SECRET_KEY")  # Unset means every token is rejected
JWT_ALGORITHM = "HS256"

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
