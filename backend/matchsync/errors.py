class MatchSyncError(Exception):
    """Base class for errors raised by the match synchronization worker."""


class FeedError(MatchSyncError):
    """The update feed is unreachable or returned an unparsable payload.

    Aborts the whole batch; the next scheduler tick retries.
    """


class DuplicateMatchError(MatchSyncError):
    """A match with the same (match_date, team_home, team_away) already exists."""
