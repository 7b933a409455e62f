class FlowException(Exception):
    """
    This is the base exception for all flow exceptions
    """
    def __init__(self, message: str, status_code: int):
        self.message = message
        self.status_code = status_code
        super().__init__(self.message, self.status_code)

class FlowDBException(FlowException):
    """
    This is the exception for all flow database exceptions
    """
    def __init__(self, message: str, status_code: int = 500):
        super().__init__(message=message, status_code=status_code)

class FlowServiceException(FlowException):
    """
    This is the exception for all flow service exceptions
    """
    def __init__(self, message: str):
        super().__init__(message=message, status_code=500)

class FlowContextConflictException(FlowException):
    """
    Raised when a session write loses a compare-and-swap race on its sequence number
    """
    def __init__(self, conversation_id: str, expected_sequence: int):
        self.conversation_id = conversation_id
        self.expected_sequence = expected_sequence
        super().__init__(
            message=f"Session for conversation {conversation_id} changed since sequence {expected_sequence}",
            status_code=409
        )

class NodeExecutionException(FlowException):
    """
    Raised by a node executor when its node configuration cannot be executed
    """
    def __init__(self, message: str, node_id: str = None):
        self.node_id = node_id
        super().__init__(message=message, status_code=500)
