from dataclasses import dataclass
from typing import Dict


class MeetupError(Exception):
    """Base class for errors raised by the meetup service"""

    error_code = 'meetup_error'
    status_code = 500

    def to_dict(self) -> Dict:
        return {'success': False, 'error': str(self), 'error_code': self.error_code}


class NoAddressesResolved(MeetupError):
    """Every address was blank or could not be geocoded"""

    error_code = 'no_addresses_resolved'
    status_code = 422


class InvalidRequest(MeetupError):
    error_code = 'invalid_request'
    status_code = 400


class ProviderError(MeetupError):
    """A geodata provider failed, timed out or returned an unusable payload.

    Raised inside the provider clients and absorbed at the adapter boundary:
    a failed lookup becomes "not found", a failed route becomes UNREACHABLE
    and a failed venue search becomes an empty result.
    """

    error_code = 'provider_error'
    status_code = 502


@dataclass(frozen=True)
class AddressNotFound:
    """Non-fatal warning for an address that geocoding could not resolve"""

    address: str
    error_code: str = 'address_not_found'

    @property
    def message(self) -> str:
        return f"Location not found: {self.address}"

    def as_dict(self) -> Dict:
        return {'address': self.address, 'error_code': self.error_code, 'message': self.message}
