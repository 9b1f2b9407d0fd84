import json
import logging
from dataclasses import dataclass, field, fields
from pathlib import Path
from types import MappingProxyType
from typing import Iterable, Mapping, Optional, Tuple

logger = logging.getLogger(__name__)


def _term_table(name: str, value) -> Tuple[str, ...]:
    # A bare string would otherwise be split into single characters
    if not isinstance(value, (list, tuple)):
        raise TypeError(f"{name} must be a list of strings, got {type(value).__name__}")
    if not all(isinstance(v, str) for v in value):
        raise TypeError(f"{name} must contain only strings")
    return tuple(v.lower() for v in value)


def _freeze_brands(brands: Mapping[str, Iterable[str]]) -> Mapping[str, Tuple[str, ...]]:
    if not isinstance(brands, Mapping):
        raise TypeError(f"brand_domains must be an object, got {type(brands).__name__}")
    return MappingProxyType({
        brand.lower(): _term_table(f"brand_domains.{brand}", domains)
        for brand, domains in brands.items()
    })


def host_matches(host: str, domain: str) -> bool:
    """True when ``host`` is ``domain`` or one of its subdomains."""
    return host == domain or host.endswith("." + domain)


def find_terms(text: str, terms: Iterable[str]) -> Tuple[str, ...]:
    """Case-insensitive substring hits, in dictionary order, without repeats."""
    if not text:
        return ()
    lowered = text.lower()
    hits = []
    for term in terms:
        if term in lowered and term not in hits:
            hits.append(term)
    return tuple(hits)


# ============================================================================
# BUILT-IN TABLES
# ============================================================================

URL_KEYWORDS = (
    'login', 'signin', 'verify', 'secure', 'account', 'update', 'confirm',
    'banking', 'password', 'credential', 'suspended', 'unusual', 'alert',
    'wallet', 'billing', 'payment', 'authenticate', 'validation', 'security',
    'urgent', 'immediately', 'action', 'required', 'expire', 'limited',
    'restore', 'unlock', 'reactivate',
)

SUSPICIOUS_TLDS = (
    # Free / budget registrations with a high abuse ratio
    '.tk', '.ml', '.ga', '.cf', '.gq',
    '.xyz', '.top', '.pw', '.cc', '.club', '.icu', '.buzz',
    '.online', '.site', '.website', '.space',
    # File-extension look-alikes
    '.zip', '.mov',
    # Frequent in phishing kits
    '.cfd', '.sbs', '.bond', '.lol', '.work', '.click', '.link',
    '.loan', '.win', '.bid', '.rest', '.monster',
)

BRAND_DOMAINS = {
    # Payment & financial
    'paypal': ['paypal.com', 'paypal.co.uk', 'paypal.ca', 'paypal.de', 'paypal.fr', 'paypal.it'],
    'mastercard': ['mastercard.com', 'mastercard.us'],
    'americanexpress': ['americanexpress.com', 'amex.com', 'aexp.com'],
    'stripe': ['stripe.com', 'stripe.network'],
    'revolut': ['revolut.com', 'revolut.co.uk'],
    'bankofamerica': ['bankofamerica.com', 'bofa.com'],
    'wellsfargo': ['wellsfargo.com', 'wf.com'],
    'capitalone': ['capitalone.com'],
    'coinbase': ['coinbase.com', 'coinbase.net'],
    'binance': ['binance.com', 'binance.us'],

    # Big tech / identity
    'microsoft': ['microsoft.com', 'office.com', 'office365.com', 'microsoftonline.com',
                  'outlook.com', 'live.com', 'hotmail.com', 'onmicrosoft.com'],
    'office365': ['office.com', 'office365.com', 'microsoft.com'],
    'google': ['google.com', 'gmail.com', 'googlemail.com', 'google.co.uk', 'google.co.in',
               'googleapis.com', 'googleusercontent.com'],
    'apple': ['apple.com', 'icloud.com', 'me.com', 'mac.com'],
    'icloud': ['icloud.com', 'apple.com'],
    'facebook': ['facebook.com', 'fb.com', 'meta.com', 'facebook.net', 'fbcdn.net'],
    'instagram': ['instagram.com', 'cdninstagram.com'],
    'whatsapp': ['whatsapp.com', 'whatsapp.net'],
    'amazon': ['amazon.com', 'amazon.co.uk', 'amazon.ca', 'amazon.de', 'amazon.fr',
               'amazon.it', 'amazon.es', 'amazon.in', 'media-amazon.com', 'amazonaws.com'],
    'netflix': ['netflix.com', 'netflix.net', 'nflxvideo.net', 'nflximg.net', 'nflxext.com'],
    'adobe': ['adobe.com', 'adobelogin.com', 'acrobat.com'],
    'spotify': ['spotify.com', 'spotifycdn.com', 'scdn.co'],
    'linkedin': ['linkedin.com', 'licdn.com'],
    'dropbox': ['dropbox.com', 'dropboxusercontent.com'],
    'docusign': ['docusign.com', 'docusign.net'],

    # Retail & shipping
    'ebay': ['ebay.com', 'ebay.co.uk'],
    'walmart': ['walmart.com', 'walmart.ca'],
    'fedex': ['fedex.com', 'fedex.ca'],
    'usps': ['usps.com'],
    'dhl': ['dhl.com', 'dhl.de', 'dhl.co.uk'],

    # Communication
    'telegram': ['telegram.org', 't.me'],
    'discord': ['discord.com', 'discordapp.com'],
    'steam': ['steampowered.com', 'steamcommunity.com'],
}

KNOWN_SAFE_DOMAINS = (
    '.gov', '.edu', '.mil',
    'github.com', 'wikipedia.org', 'mozilla.org', 'python.org',
    'yahoo.com', 'bing.com', 'youtube.com', 'twitter.com', 'x.com',
    'reddit.com', 'zoom.us', 'slack.com', 'salesforce.com',
    'booking.com', 'airbnb.com', 'uber.com', 'visa.com', 'chase.com',
    'ups.com', 'cloudflare.com', 'akamaihd.net', 'cloudfront.net',
)

URGENCY_TERMS = (
    'urgent', 'immediately', 'immediate', 'asap', 'right away', 'act now',
    'verify now', 'within 24 hours', 'within 48 hours', 'expires today',
    'final warning', 'last chance', 'limited time', 'action required', 'deadline',
)

VERIFICATION_TERMS = (
    'verify', 'verification', 'confirm your', 'validate', 'update your account',
    'update your information', 're-enter', 'log in to', 'login to', 'sign in to',
    'authenticate', 'password', 'credentials',
)

THREAT_TERMS = (
    'suspended', 'suspend', 'locked', 'terminated', 'legal action', 'permanently',
    'unauthorized', 'unusual activity', 'compromised', 'penalty', 'will be deleted',
    'will be closed',
)

MONEY_TERMS = (
    'refund', 'invoice', 'wire transfer', 'bank account', 'credit card', 'gift card',
    'bitcoin', 'prize', 'lottery', 'reward', 'tax', 'payment', '$',
)

GRAMMAR_MARKERS = (
    'dear customer', 'dear user', 'dear valued customer', 'dear account holder',
    'dear member', 'kindly', 'we has', 'you has', 'your account have', 'click here below',
    'do the needful', '!!',
)

BENIGN_SUBJECT_TERMS = (
    'receipt', 'order confirmation', 'shipping confirmation', 'has shipped',
)

LOGO_KEYWORDS = (
    'phish', 'fake', 'scam', 'suspicious', 'counterfeit', 'clone', 'replica',
)

URL_SHORTENERS = (
    'bit.ly', 'tinyurl.com', 'goo.gl', 't.co', 'ow.ly', 'is.gd', 'buff.ly',
    'rebrand.ly', 'cutt.ly', 'shorturl.at',
)

# Free mailbox providers: anyone can register an address, so a sender on one
# of these is never official for any brand
CONSUMER_MAIL_DOMAINS = (
    'gmail.com', 'googlemail.com', 'outlook.com', 'hotmail.com', 'live.com',
    'msn.com', 'icloud.com', 'me.com', 'mac.com', 'yahoo.com', 'aol.com',
    'proton.me', 'protonmail.com', 'gmx.com', 'mail.com', 'yandex.com', 'zoho.com',
)

SENDER_PATTERN_TERMS = (
    'security', 'update', 'verify', 'verification', 'alert', 'account',
)


@dataclass(frozen=True)
class PhishingDictionaries:
    """
    Immutable keyword, brand and domain tables shared by the extractors.

    Built once at start-up and passed by reference; tests build smaller ones.
    Domain entries starting with a dot match by suffix (``.gov``).
    """
    url_keywords: Tuple[str, ...] = URL_KEYWORDS
    suspicious_tlds: Tuple[str, ...] = SUSPICIOUS_TLDS
    brand_domains: Mapping[str, Tuple[str, ...]] = field(
        default_factory=lambda: _freeze_brands(BRAND_DOMAINS)
    )
    known_safe_domains: Tuple[str, ...] = KNOWN_SAFE_DOMAINS
    urgency_terms: Tuple[str, ...] = URGENCY_TERMS
    verification_terms: Tuple[str, ...] = VERIFICATION_TERMS
    threat_terms: Tuple[str, ...] = THREAT_TERMS
    money_terms: Tuple[str, ...] = MONEY_TERMS
    grammar_markers: Tuple[str, ...] = GRAMMAR_MARKERS
    benign_subject_terms: Tuple[str, ...] = BENIGN_SUBJECT_TERMS
    logo_keywords: Tuple[str, ...] = LOGO_KEYWORDS
    url_shorteners: Tuple[str, ...] = URL_SHORTENERS
    consumer_mail_domains: Tuple[str, ...] = CONSUMER_MAIL_DOMAINS
    sender_pattern_terms: Tuple[str, ...] = SENDER_PATTERN_TERMS

    def __post_init__(self):
        # Normalise so callers may pass plain lists/dicts
        for f in fields(self):
            value = getattr(self, f.name)
            if f.name == 'brand_domains':
                if not isinstance(value, MappingProxyType):
                    object.__setattr__(self, f.name, _freeze_brands(value))
            else:
                object.__setattr__(self, f.name, _term_table(f.name, value))

    # ------------------------------------------------------------------
    # Provenance helpers
    # ------------------------------------------------------------------

    def brands_in(self, text: str) -> Tuple[str, ...]:
        return find_terms(text, self.brand_domains.keys())

    def is_official_host(self, host: str, brand: str) -> bool:
        if not host:
            return False
        return any(host_matches(host, d) for d in self.brand_domains.get(brand, ()))

    def is_brand_official(self, host: str) -> bool:
        return any(self.is_official_host(host, brand) for brand in self.brand_domains)

    def is_known_safe(self, host: str) -> bool:
        """Known-safe list or an official domain of any brand."""
        if not host:
            return False
        for domain in self.known_safe_domains:
            if domain.startswith('.'):
                if host.endswith(domain):
                    return True
            elif host_matches(host, domain):
                return True
        return self.is_brand_official(host)

    def suspicious_tld_of(self, host: str) -> Optional[str]:
        for tld in self.suspicious_tlds:
            if host.endswith(tld):
                return tld
        return None

    def is_shortener(self, host: str) -> bool:
        return any(host_matches(host, d) for d in self.url_shorteners)

    def is_consumer_mailbox(self, host: str) -> bool:
        if not host:
            return False
        return any(host_matches(host, d) for d in self.consumer_mail_domains)


def load_dictionaries(path: Optional[str] = None) -> PhishingDictionaries:
    """
    Build the dictionaries, optionally replacing tables from a JSON file.

    The file holds any subset of the field names, e.g.
    ``{"url_keywords": [...], "brand_domains": {"paypal": ["paypal.com"]}}``.
    A missing or invalid file keeps the built-in tables.
    """
    if not path:
        return PhishingDictionaries()

    file_path = Path(path)
    try:
        with open(file_path, 'r', encoding='utf-8') as f:
            data = json.load(f)
    except FileNotFoundError:
        logger.warning(f"⚠️ Dictionary file not found: {file_path}, using built-in tables")
        return PhishingDictionaries()
    except (json.JSONDecodeError, OSError) as e:
        logger.error(f"❌ Could not read dictionary file {file_path}: {e}")
        return PhishingDictionaries()

    if not isinstance(data, dict):
        logger.error(f"❌ Dictionary file {file_path} must contain a JSON object")
        return PhishingDictionaries()

    known = {f.name for f in fields(PhishingDictionaries)}
    overrides = {k: v for k, v in data.items() if k in known}
    ignored = sorted(set(data) - known)
    if ignored:
        logger.warning(f"⚠️ Ignoring unknown dictionary tables: {', '.join(ignored)}")

    try:
        dictionaries = PhishingDictionaries(**overrides)
    except (TypeError, AttributeError) as e:
        logger.error(f"❌ Invalid dictionary tables in {file_path}: {e}")
        return PhishingDictionaries()

    logger.info(f"✓ Loaded {len(overrides)} dictionary tables from: {file_path}")
    return dictionaries
