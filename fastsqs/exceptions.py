class FastSQSException(Exception):
    pass


class FastSQSCLIException(FastSQSException):
    pass
