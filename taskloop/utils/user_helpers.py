"""Shared user-related helper functions."""


def mask_username(username, show_chars=3):
    """
    Shorten a username for public listings.

    Shows the first ``show_chars`` characters and the last two, e.g.
    ``alexander`` -> ``ale...er``. Usernames too short to hide anything are
    returned as is.
    """
    if not username:
        return 'Unknown'
    if len(username) <= show_chars + 2:
        return username
    return f"{username[:show_chars]}...{username[-2:]}"

