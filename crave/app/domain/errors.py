from __future__ import annotations


class CraveError(Exception):
    pass


class RepositoryError(CraveError):
    def __init__(self, operation: str, reason: str):
        super().__init__(f"Repository error during {operation}: {reason}")
        self.operation = operation
        self.reason = reason


class PostNotFoundError(CraveError):
    def __init__(self, post_id: str):
        super().__init__(f"Post not found: {post_id}")
        self.post_id = post_id


class PostRemovedError(CraveError):
    def __init__(self, post_id: str):
        super().__init__(f"Post has been removed: {post_id}")
        self.post_id = post_id


class UsernameTakenError(CraveError):
    def __init__(self, username: str):
        super().__init__(f"Username already taken: {username}")
        self.username = username


class InvalidUsernameError(CraveError):
    def __init__(self, username: str, reason: str = "Invalid username"):
        super().__init__(f"{reason}: {username}")
        self.username = username
        self.reason = reason


class CommentValidationError(CraveError):
    def __init__(self, message: str, code: str = "invalid"):
        super().__init__(message)
        self.code = code


class CommentNotFoundError(CraveError):
    def __init__(self, comment_id: str):
        super().__init__(f"Comment not found: {comment_id}")
        self.comment_id = comment_id


class AlreadyReportedError(CraveError):
    def __init__(self, target_type: str, target_id: str):
        super().__init__(f"Already reported {target_type} {target_id}")
        self.target_type = target_type
        self.target_id = target_id


class AlreadyBlockedError(CraveError):
    def __init__(self, blocked_id: str):
        super().__init__(f"User already blocked: {blocked_id}")
        self.blocked_id = blocked_id


class SelfBlockError(CraveError):
    def __init__(self, message: str = "You cannot block yourself"):
        super().__init__(message)


class PermissionDeniedError(CraveError):
    def __init__(self, user_id: str, action: str):
        super().__init__(f"User {user_id} is not allowed to {action}")
        self.user_id = user_id
        self.action = action


class PlaybackError(CraveError):
    def __init__(self, post_id: str, reason: str):
        super().__init__(f"Playback failed for post {post_id}: {reason}")
        self.post_id = post_id
        self.reason = reason


class StorageError(CraveError):
    pass


class UploadError(StorageError):
    def __init__(self, object_key: str, reason: str = "Upload failed"):
        super().__init__(f"Failed to upload {object_key}: {reason}")
        self.object_key = object_key
        self.reason = reason


class UnsupportedMediaError(StorageError):
    def __init__(self, content_type: str):
        super().__init__(f"Unsupported media type: {content_type}")
        self.content_type = content_type


class ModerationError(CraveError):
    def __init__(self, post_id: str, reason: str):
        super().__init__(f"Moderation failed for post {post_id}: {reason}")
        self.post_id = post_id
        self.reason = reason


class ActivePostScopeError(CraveError):
    def __init__(self, message: str = "use_active_post() must be called inside an active_post_scope()"):
        super().__init__(message)


class UploadValidationError(CraveError):
    def __init__(self, filename: str, reason: str):
        super().__init__(f"Rejected upload {filename}: {reason}")
        self.filename = filename
        self.reason = reason
