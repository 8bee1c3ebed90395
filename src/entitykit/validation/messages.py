"""Default validation error messages.

Templates may use these placeholders:

- ``{key}``: the validated attribute
- ``{validationName}``: the rule name, e.g. ``minLength``
- ``{validationValue}``: the rule value, e.g. ``5``
- ``{received}``: the validated value
- ``{refinedReceived}``: the value the rule compared, e.g. a string length
"""

DEFAULT_MESSAGES: dict[str, str] = {
    "validation.eq": "Value for '{key}' should be equal to '{validationValue}'",
    "validation.neq": "Value for '{key}' should not be equal to '{validationValue}'",
    "validation.gt": "Value for '{key}' should be greater than '{validationValue}'",
    "validation.gte": "Value for '{key}' should be greater than or equal to '{validationValue}'",
    "validation.lt": "Value for '{key}' should be less than '{validationValue}'",
    "validation.lte": "Value for '{key}' should be less than or equal to '{validationValue}'",
    "validation.inlist": "Value for '{key}' should be one of '{validationValue}'",
    "validation.notinlist": "Value for '{key}' should not be one of '{validationValue}'",
    "validation.unique": "Value for '{key}' should be unique",
    "validation.pattern": "Value for '{key}' should match '{validationValue}' pattern",
    "validation.datatype": "Value for '{key}' should be '{validationValue}'",
    "validation.required": "Value for '{key}' is required",
    "validation.readonly": "Value for '{key}' is read-only and cannot be updated",
    "validation.nullable": "Value for '{key}' cannot be null",
    "validation.maxlength": (
        "Value for '{key}' should have maximum length of '{validationValue}'; "
        "instead of '{refinedReceived}'"
    ),
    "validation.minlength": (
        "Value for '{key}' should have minimum length of '{validationValue}'; "
        "instead of '{refinedReceived}'"
    ),
}

FALLBACK_MESSAGE = (
    "Validation failed for '{key}'; expected '{validationName}/{validationValue}', "
    "received '{received}/{refinedReceived}'."
)


def render_message(template: str, **values: object) -> str:
    """Fill the ``{placeholder}`` slots of ``template``; unknown slots stay as they are."""
    message = template
    for name, value in values.items():
        message = message.replace("{" + name + "}", "" if value is None else str(value))
    return message
