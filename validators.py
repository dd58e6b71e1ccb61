"""
Declarative form validation.

Each form field gets an ordered chain of steps. A step either transforms the
value (trim, escape, date conversion) or checks it and fails with a message.
Every field is validated before anything is reported, so a form always comes
back with all of its errors at once.
"""

from datetime import date, datetime
from typing import NamedTuple

from markupsafe import escape as escape_markup


class FieldError(NamedTuple):
    field: str
    message: str


class StepFailed(Exception):
    """Raised by a check step; carries the message to report."""

    def __init__(self, message):
        super().__init__(message)
        self.message = message


def parse_iso_date(value: str) -> date:
    """
    Parse an ISO 8601 date ('1775-12-16') or date-time ('1775-12-16T10:00')
    into a datetime.date.

    Raises:
        ValueError: when the text is not ISO 8601.
    """
    value = value.strip()
    try:
        return date.fromisoformat(value)
    except ValueError:
        return datetime.fromisoformat(value).date()


class FieldChain:
    """
    Ordered validation steps for one form field.

    Args:
        name: form field name.
        message: default error message for checks without their own.
    """

    def __init__(self, name, message=None):
        self.name = name
        self.message = message or "Invalid value."
        self.steps = []
        self.skip_if_empty = False
        self.multiple = False

    def trim(self):
        self.steps.append(lambda value: value.strip())
        return self

    def required(self, min_length=1, message=None):
        return self.length(min_length=min_length, message=message)

    def length(self, min_length=0, max_length=None, message=None):
        def check(value):
            if len(value) < min_length or (max_length is not None and len(value) > max_length):
                raise StepFailed(message or self.message)
            return value
        self.steps.append(check)
        return self

    def escape(self):
        self.steps.append(lambda value: str(escape_markup(value)))
        return self

    def optional(self):
        # Applies to the whole chain, wherever it is declared.
        self.skip_if_empty = True
        return self

    def is_date(self, message=None):
        def check(value):
            try:
                return parse_iso_date(value)
            except ValueError:
                raise StepFailed(message or self.message)
        self.steps.append(check)
        return self

    def to_list(self):
        self.multiple = True
        return self

    def run(self, raw):
        """
        Run the chain over a raw value.

        Returns:
            (value, error) where error is None on success. On failure the
            value is the last good intermediate value, for redisplay.
        """
        if self.multiple:
            values, error = [], None
            for item in raw or []:
                value, item_error = self._run_one(item)
                values.append(value)
                error = error or item_error
            return values, error
        return self._run_one(raw)

    def _run_one(self, raw):
        value = "" if raw is None else raw
        if self.skip_if_empty and not value:
            return None, None
        for step in self.steps:
            try:
                value = step(value)
            except StepFailed as exc:
                return value, FieldError(self.name, exc.message)
        return value, None


def field(name, message=None) -> FieldChain:
    return FieldChain(name, message)


class ValidationResult:
    def __init__(self, values, errors):
        self.values = values
        self.errors = errors

    @property
    def is_valid(self) -> bool:
        return not self.errors

    def add_error(self, field_name, message):
        self.errors.append(FieldError(field_name, message))

    def messages(self):
        return [error.message for error in self.errors]


def validate(form, chains) -> ValidationResult:
    """
    Validate a submitted form against a list of field chains.

    Args:
        form: a werkzeug MultiDict (request.form) or a plain dict.
        chains: FieldChain objects, in the order errors should be reported.

    Returns:
        ValidationResult with sanitized values for every field and the
        ordered list of FieldError pairs.
    """
    values, errors = {}, []
    for chain in chains:
        if chain.multiple:
            raw = form.getlist(chain.name) if hasattr(form, "getlist") else form.get(chain.name, [])
        else:
            raw = form.get(chain.name)
        value, error = chain.run(raw)
        values[chain.name] = value
        if error is not None:
            errors.append(error)
    return ValidationResult(values, errors)
