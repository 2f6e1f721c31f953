import re
from typing import List, Optional

DEFAULT_CARRIER = 'att'

# Carrier tag -> email-to-SMS gateway domain
CARRIER_DOMAINS = {
    'att': 'txt.att.net',
    'verizon': 'vtext.com',
    'tmobile': 'tmomail.net',
    'sprint': 'messaging.sprintpcs.com',
    'uscellular': 'email.uscc.net',
    'boost': 'sms.myboostmobile.com',
    'cricket': 'sms.cricketwireless.net',
    'metropcs': 'mymetropcs.com',
}

_NON_DIGITS = re.compile(r'\D')


def supported_carriers() -> List[str]:
    return sorted(CARRIER_DOMAINS)


def gateway_domain(carrier: Optional[str]) -> str:
    """Gateway domain for a carrier tag; unknown tags use the default carrier"""
    tag = (carrier or '').strip().lower()
    return CARRIER_DOMAINS.get(tag, CARRIER_DOMAINS[DEFAULT_CARRIER])


def resolve_address(destination: str, carrier: Optional[str]) -> str:
    """
    Map a phone number and carrier tag to an email-to-SMS gateway address.

    "+1 (555) 123-4567" on "tmobile" becomes "5551234567@tmomail.net": all
    non-digits are dropped, then one leading country-code 1 is removed.
    """
    digits = _NON_DIGITS.sub('', destination or '')
    if digits.startswith('1'):
        digits = digits[1:]
    return f"{digits}@{gateway_domain(carrier)}"
