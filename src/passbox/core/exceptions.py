"""
Exceptions for PassBox
Every error raised by the store engine and its gateways derives from PassBoxError,
so callers have one general error catcher.
"""


class PassBoxError(Exception):
    # general container for errors
    pass


class ConfigError(PassBoxError):
    # raised when the settings file cannot be parsed
    pass


class StoreError(PassBoxError):
    # raised if the store layout or a filesystem step fails
    pass


class EntryNotFoundError(StoreError):
    # raised if an entry (secret or sidecar) is not in the store
    pass


class EntryAlreadyExistsError(StoreError):
    # raised when creating or renaming onto an existing entry
    pass


class InvalidEntryNameError(StoreError):
    # raised when an entry name is empty or resolves outside the store root
    pass


class StoreAlreadyInitializedError(StoreError):
    # raised when initializing a store that already has a recipient identity
    pass


class StoreFolderAlreadyExistsError(StoreError):
    # raised when the store folder already holds another store or unrelated files
    pass


class IdentityNotFoundError(StoreError):
    # raised when the .gpg-id file is missing or empty
    pass


class LockVerificationFailedError(PassBoxError):
    # raised when the held lock cannot be verified before a destructive op
    def __init__(self, message: str = "Lock check failed"):
        super().__init__(message)


class EncryptionError(PassBoxError):
    # raised when the encryption back end fails in some way
    pass


class EncryptFailedError(EncryptionError):
    pass


class DecryptFailedError(EncryptionError):
    pass


class EmptySecretError(DecryptFailedError):
    # raised when a secret decrypts to an empty value
    pass


class KeyNotFoundError(EncryptionError):
    # raised when the recipient key is unknown to the back end
    pass


class KeyInvalidError(EncryptionError):
    # raised when the recipient key is expired, revoked or unusable
    pass


class VersionControlError(PassBoxError):
    # raised when the version control back end fails
    pass


class RemoteCloneFailedError(VersionControlError):
    pass


class CommitFailedError(VersionControlError):
    pass
