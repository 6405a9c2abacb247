"""Human-readable formatting helpers used in log lines and error messages."""

_UNITS = ["B", "KB", "MB", "GB", "TB"]


def format_file_size(size: int) -> str:
    """
    Format a byte count for humans.

    Examples:
        >>> format_file_size(512)
        '512 B'
        >>> format_file_size(5 * 1024 * 1024)
        '5.00 MB'
    """
    if size < 1024:
        return f"{size} B"

    value = float(size)
    unit = 0
    while value >= 1024 and unit < len(_UNITS) - 1:
        value /= 1024
        unit += 1
    return f"{value:.2f} {_UNITS[unit]}"
