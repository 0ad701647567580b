class DriveError(Exception):
    pass


# Cryptographic failures: never retried, never degrade to partial output

class RandomSourceUnavailable(DriveError):
    pass


class CipherParameterError(DriveError):
    pass


class AuthenticationFailure(DriveError):
    pass


class MalformedEncodingError(DriveError):
    pass


# Collaborator failures: surfaced to the caller for retry decisions

class StorageUploadFailure(DriveError):
    pass


class UnpinFailure(DriveError):
    def __init__(self, message, content_id=None):
        super().__init__(message)
        self.content_id = content_id


class FetchFailure(DriveError):
    pass


class DocumentStoreError(DriveError):
    pass


class MetadataPersistFailure(DocumentStoreError):
    pass


class RecordNotFound(DocumentStoreError):
    pass


# Caller errors

class FileTooLarge(DriveError):
    pass


class ConfigError(DriveError):
    pass
