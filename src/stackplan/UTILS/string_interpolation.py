"""
Utilities for string interpolation using environment variables.
"""
import re
from typing import List, Mapping, Optional, Tuple

# Group 1: "$" of an escaped "$$"
# Group 2: variable name
# Group 3: - or +
# Group 4: default or alternate value
PLACEHOLDER = re.compile(r'\$(?:(\$)|\{([^}:]+)(?::(-|\+)([^}]*))?\})')

# A value that is nothing but one ${VAR} or ${VAR:-default}
SOLE_REFERENCE = re.compile(r'^\$\{([^}:]+)(?::-([^}]*))?\}$')


class EnvironmentInterpolator:
    """
    Utility for interpolating environment variables in strings.
    Supports ${VAR}, ${VAR:-default}, ${VAR:+value} and $$ for a literal $.
    """
    @staticmethod
    def interpolate(template: str,
                    context: Mapping[str, str],
                    missing: Optional[List[str]] = None) -> str:
        """
        Interpolates environment variables in the template string using the provided context.

        :param template: The string containing ${VAR} placeholders.
        :param context: The environment variables context.
        :param missing: If given, unset variables are appended here and
            replaced by an empty string instead of raising.
        :return: The interpolated string.
        :raises KeyError: If a variable is not found, no default is provided
            and no ``missing`` list was passed.
        """
        def replace(match):
            if match.group(1):
                return '$'

            var_name = match.group(2)
            modifier = match.group(3)
            alt_value = match.group(4)

            value = context.get(var_name)

            if modifier == '-':
                # unset or empty falls back to the default
                return value if value else alt_value
            if modifier == '+':
                return alt_value if value else ''
            if value is not None:
                return value
            if missing is None:
                raise KeyError(f"Variable {var_name} not found in context")
            if var_name not in missing:
                missing.append(var_name)
            return ''

        return PLACEHOLDER.sub(replace, template)

    @staticmethod
    def variables(template: str) -> List[str]:
        """
        Names of the variables a template refers to, in order of first use.

        :param template: The string containing ${VAR} placeholders.
        :return: Variable names, without duplicates.
        """
        names = []
        for match in PLACEHOLDER.finditer(template):
            name = match.group(2)
            if name and name not in names:
                names.append(name)
        return names

    @staticmethod
    def sole_reference(value: str) -> Optional[Tuple[str, Optional[str]]]:
        """
        Detects a value made of exactly one ``${VAR}`` or ``${VAR:-default}``.

        :param value: The raw value.
        :return: ``(variable, default)`` with default None when absent, or None.
        """
        match = SOLE_REFERENCE.fullmatch(value)
        if not match:
            return None
        return match.group(1), match.group(2)

    @staticmethod
    def reference(variable: str, default: Optional[str] = None) -> str:
        """
        Inverse of :meth:`sole_reference`.
        """
        if default is None:
            return f"${{{variable}}}"
        return f"${{{variable}:-{default}}}"
