"""Error taxonomy shared by the service modules and the Flask routes.

Every error carries the HTTP status it maps to. Routes never build error
bodies by hand: they raise, and the handlers registered in ``app.py`` render
``{"error": message}``.
"""


class ApiError(Exception):
    status = 500
    message = "Internal server error"

    def __init__(self, message=None, status=None):
        super().__init__(message or self.message)
        if message:
            self.message = message
        if status:
            self.status = status


class BadRequest(ApiError):
    status = 400
    message = "Bad request"


class Unauthorized(ApiError):
    status = 401
    message = "Not authenticated"


class NotFound(ApiError):
    status = 404
    message = "Not found"


class UpstreamError(ApiError):
    """An external API or database call failed.

    The message is for the logs only; callers see the route's generic message.
    """

    status = 500


class GameNotFound(NotFound):
    message = "Game not found"


class CatalogError(UpstreamError):
    message = "BoardGameGeek request failed"


class SpotifyError(UpstreamError):
    message = "Spotify request failed"

    def __init__(self, message=None, status_code=None):
        super().__init__(message)
        # status returned by Spotify, not the one we answer with
        self.status_code = status_code
