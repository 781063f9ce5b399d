class JsonPathWalkError(Exception):
    pass


class InvalidPathError(JsonPathWalkError):
    def __init__(self, path: str, token: str | None, message: str):
        super().__init__(f"{message} (path='{path}', token='{token}')")
        self.path = path
        self.token = token
        self.message = message


class PathNotFoundError(JsonPathWalkError):
    def __init__(self, path: str, token: str | None, message: str):
        super().__init__(f"{message} (path='{path}', token='{token}')")
        self.path = path
        self.token = token
        self.message = message


class PathFunctionError(JsonPathWalkError):
    def __init__(self, function: str, message: str):
        super().__init__(f"{message} (function='{function}')")
        self.function = function
        self.message = message


class PathEvaluationError(JsonPathWalkError):
    pass
