"""
app/flow/states.py

Purpose: Defines the phone verification states

- NO_CODE, CODE_ACTIVE, VERIFIED
- Derived from the account snapshot by `verification_state()`; never stored
"""

from enum import Enum


class VerificationState(str, Enum):
    """
    Per-account verification state, derived from the account snapshot.
    """

    # No code outstanding (never requested, expired, or cleared)
    NO_CODE = "NO_CODE"

    # A code has been generated and has not yet expired
    CODE_ACTIVE = "CODE_ACTIVE"

    # Phone ownership proven; sticky for the life of the account
    VERIFIED = "VERIFIED"
