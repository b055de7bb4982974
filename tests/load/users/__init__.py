"""Load test user personas."""

from tests.load.users.key_manager import KeyManagerUser
from tests.load.users.validator import KeyValidatorUser

__all__ = ["KeyValidatorUser", "KeyManagerUser"]
