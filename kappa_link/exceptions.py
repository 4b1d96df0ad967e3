# Copyright 2019-present Kensho Technologies, LLC.
class KappaLinkError(Exception):
    """Generic error when routing GraphQL operations to kappa views."""


class KappaParsingError(KappaLinkError):
    """Exception raised when the provided GraphQL string could not be parsed."""


class KappaDirectiveError(KappaLinkError):
    """Exception raised when a @kappa directive is applied with invalid arguments.

    For example:
    - the required "view" argument is missing;
    - an argument has the wrong type, e.g. a list where a string was expected.
    """


class KappaInvalidOperationError(KappaLinkError):
    """Exception raised when a GraphQL document contains no usable definition."""
