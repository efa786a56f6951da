"""Contains output validation"""

from typing import Optional

from codejudge.assessment.normalization import normalize


def validate(actual: Optional[str], expected: Optional[str]) -> bool:
    """Compares program output with the expected output

    Args:
        actual (str): captured stdout
        expected (str): expected stdout of the test case

    Returns:
        bool: are outputs equal after normalization
    """
    return normalize(actual or "") == normalize(expected or "")
