from adsentry.models.metric import MetricType

CURRENCY_SYMBOLS = {"EUR": "€", "USD": "$", "GBP": "£"}


def format_currency(value: float, currency: str = "EUR") -> str:
    symbol = CURRENCY_SYMBOLS.get(currency.upper())
    if symbol:
        return f"{symbol}{value:,.2f}"
    return f"{value:,.2f} {currency.upper()}"


def format_metric_value(metric, value: float, currency: str = "EUR") -> str:
    if metric == MetricType.ENGAGEMENT_RATE:
        return f"{value * 100:.1f}%"
    if metric == MetricType.PURCHASE_REVENUE:
        return format_currency(value, currency)
    if float(value).is_integer():
        return f"{value:,.0f}"
    return f"{value:,.1f}"


def format_delta_pct(delta_pct: float) -> str:
    sign = "+" if delta_pct > 0 else ""
    return f"{sign}{delta_pct:.1f}%"
