from business_portal.services.formatting import format_number, format_currency


def test_format_number():
    assert format_number(12.5) == '12.5'
    assert format_number(3.0) == '3'
    assert format_number(1.239) == '1.24'
    assert format_number('abc') == '0'
    assert format_number(None) == '0'
    assert format_number(float('nan')) == '0'


def test_format_currency():
    assert format_currency(1234567) == '1.234.567'
    assert format_currency(999) == '999'
    assert format_currency(1500000.4) == '1.500.000'
    assert format_currency(-25000) == '-25.000'
    assert format_currency(None) == '0'
