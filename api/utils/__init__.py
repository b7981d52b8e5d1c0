# mailmatch API Utilities
"""
Shared utility functions for mailmatch API services.
"""

from api.utils.datetime_utils import make_aware, years_before

__all__ = ["make_aware", "years_before"]
