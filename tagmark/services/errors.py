class TagmarkError(Exception):
    status_code = 500

    def __init__(self, message: str, payload: dict | None = None):
        super().__init__(message)
        self.message = message
        self.payload = payload or {}

    def as_dict(self):
        return {"error": self.message, **self.payload}


class InvalidInput(TagmarkError):
    status_code = 400


class RecordNotFound(TagmarkError):
    status_code = 404


class DuplicateRecord(TagmarkError):
    status_code = 409


class RecordStoreError(TagmarkError):
    status_code = 500
