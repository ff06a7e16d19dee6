def format_number(value):
    """Number with at most two decimals and no trailing zeros, "0" when invalid."""
    try:
        number = float(value)
    except (TypeError, ValueError):
        return '0'
    if number != number:  # NaN
        return '0'
    text = f'{round(number, 2):.2f}'.rstrip('0').rstrip('.')
    return '0' if text in ('-0', '') else text


def format_currency(value):
    """Indonesian style thousands separator, e.g. 1234567 -> 1.234.567"""
    try:
        number = round(float(value))
    except (TypeError, ValueError):
        return '0'
    return f'{number:,}'.replace(',', '.')
