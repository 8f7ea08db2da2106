# campgrounds/policy/params/errors.py


class PolicyConfigError(RuntimeError):
    pass

class PolicyValidationError(PolicyConfigError, ValueError):
    pass
