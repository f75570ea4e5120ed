"""Domain test services."""

from api_test_hub.services.auth import AuthTestService
from api_test_hub.services.base import ParseError, ResultBuilder, TestService
from api_test_hub.services.linking import LinkingTestService
from api_test_hub.services.profile import ProfileTestService
from api_test_hub.services.suite import TestServices
from api_test_hub.services.token import TokenTestService

__all__ = [
    "AuthTestService",
    "LinkingTestService",
    "ParseError",
    "ProfileTestService",
    "ResultBuilder",
    "TestService",
    "TestServices",
    "TokenTestService",
]
