# merchantconnect/core/errors.py


class ServiceNotInitializedError(RuntimeError):
    """
    Raised when a backend handle (database engine, storage client, service
    context) is used before ServiceContext.init() has run, or after
    teardown().
    """

    def __init__(self, component: str):
        self.component = component
        super().__init__(f"{component} is not initialized")
