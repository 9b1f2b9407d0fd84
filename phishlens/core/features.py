import ipaddress
import math
import re
from collections import Counter
from dataclasses import asdict, dataclass
from typing import Dict, List, Optional, Tuple
from urllib.parse import urlsplit

import tldextract
from bs4 import BeautifulSoup

from phishlens.core.artifacts import EmailInput, LogoInput, UrlInput
from phishlens.core.dictionaries import PhishingDictionaries, find_terms

# Offline public-suffix snapshot; the extractor never touches the network
_TLD_EXTRACT = tldextract.TLDExtract(cache_dir=None, suffix_list_urls=())

_SCHEME_PATTERN = re.compile(r'^[a-zA-Z][a-zA-Z0-9+.\-]*://')
_IPV4_PATTERN = re.compile(r'\d{1,3}\.\d{1,3}\.\d{1,3}\.\d{1,3}')
_ENCODED_PATTERN = re.compile(r'%[0-9a-fA-F]{2}')
_CONSONANTS = set('bcdfghjklmnpqrstvwxyz')

_LINK_PATTERN = re.compile(
    r'(?:(?:https?|ftp)://|www\.)'
    r'(?:[a-zA-Z0-9\-._~:/?#\[\]@!$&\'()*+,;=%]+)',
    re.IGNORECASE
)
_HTML_PATTERN = re.compile(r'<\s*(?:html|body|a|div|p|br|table|span)\b', re.IGNORECASE)
_DEFANG_PATTERNS = [
    (r'hxxp', 'http'),
    (r'h\[tt\]p', 'http'),
    (r'\[\.\]', '.'),
    (r'\(dot\)', '.'),
    (r'\[dot\]', '.'),
    (r'\[:\]', ':'),
]
_MAX_LINKS = 20


# ============================================================================
# STATISTICS
# ============================================================================

def shannon_entropy(text: str) -> float:
    """Shannon entropy (bits) of the character distribution of ``text``."""
    if not text:
        return 0.0
    length = len(text)
    entropy = 0.0
    for count in Counter(text).values():
        p = count / length
        entropy -= p * math.log2(p)
    return entropy


def consonant_ratio(text: str) -> float:
    letters = [c for c in text.lower() if 'a' <= c <= 'z']
    if not letters:
        return 0.0
    return sum(1 for c in letters if c in _CONSONANTS) / len(letters)


def digit_ratio(text: str) -> float:
    if not text:
        return 0.0
    return sum(1 for c in text if c.isdigit()) / len(text)


def uppercase_ratio(text: str) -> float:
    letters = [c for c in text if c.isalpha()]
    if not letters:
        return 0.0
    return sum(1 for c in letters if c.isupper()) / len(letters)


def is_ip_host(host: str) -> bool:
    if not host:
        return False
    if _IPV4_PATTERN.fullmatch(host):
        return True
    try:
        ipaddress.ip_address(host)
        return True
    except ValueError:
        return False


def hostname_of(url: str) -> str:
    """Lower-case hostname of ``url`` or ``""`` when it cannot be parsed."""
    candidate = url if _SCHEME_PATTERN.match(url) else f"https://{url}"
    try:
        return (urlsplit(candidate).hostname or '').lower()
    except ValueError:
        return ''


def registered_domain_of(host: str) -> str:
    if not host or is_ip_host(host):
        return ''
    extracted = _TLD_EXTRACT(host)
    if extracted.domain and extracted.suffix:
        return f"{extracted.domain}.{extracted.suffix}".lower()
    return ''


def sender_domain_of(sender: str) -> str:
    lowered = sender.lower()
    at = lowered.rfind('@')
    if at < 0:
        return ''
    return lowered[at + 1:].split('>')[0].strip()


# ============================================================================
# FEATURE RECORDS
# ============================================================================

@dataclass(frozen=True)
class UrlFeatures:
    url: str
    length: int
    num_dots: int
    num_hyphens: int
    num_underscores: int
    num_slashes: int
    num_digits: int
    num_at_symbols: int
    has_https: bool
    scheme_assumed: bool
    has_ip_address: bool
    suspicious_tld: Optional[str]
    suspicious_keywords: Tuple[str, ...]
    has_encoded_chars: bool
    hostname: str
    registered_domain: str
    domain_length: int
    path_length: int
    query_length: int
    num_subdomains: int
    port: Optional[int]
    has_nonstandard_port: bool
    entropy: float
    consonant_ratio: float
    digit_ratio: float
    brand_mentions: Tuple[str, ...]
    off_brand_mentions: Tuple[str, ...]
    is_known_safe: bool
    parse_failed: bool

    artifact_type = "url"

    def to_dict(self) -> Dict:
        return asdict(self)

    def summary(self) -> str:
        return "\n".join([
            f"- Length: {self.length}",
            f"- Has HTTPS: {self.has_https}" + (" (scheme not given)" if self.scheme_assumed else ""),
            f"- IP Address: {self.has_ip_address}",
            f"- Suspicious TLD: {self.suspicious_tld or 'none'}",
            f"- Suspicious Keywords: {', '.join(self.suspicious_keywords) or 'none'}",
            f"- Brands mentioned: {', '.join(self.brand_mentions) or 'none'}",
            f"- Known safe domain: {self.is_known_safe}",
            f"- Subdomains: {self.num_subdomains}",
            f"- Entropy: {self.entropy:.2f}",
        ])


@dataclass(frozen=True)
class EmailFeatures:
    sender: str
    sender_domain: str
    sender_is_official: bool
    sender_is_consumer_mailbox: bool
    sender_suspicious_tld: Optional[str]
    sender_patterns: Tuple[str, ...]
    spoofed_brands: Tuple[str, ...]
    spoofed_in_domain: Tuple[str, ...]
    impersonated_brands: Tuple[str, ...]
    urgency_keywords: Tuple[str, ...]
    verification_keywords: Tuple[str, ...]
    threat_keywords: Tuple[str, ...]
    money_keywords: Tuple[str, ...]
    links: Tuple[str, ...]
    suspicious_links: Tuple[str, ...]
    grammar_markers: Tuple[str, ...]
    benign_subject_markers: Tuple[str, ...]
    exclamation_count: int
    subject_uppercase_ratio: float
    body_length: int
    body_entropy: float
    body_digit_ratio: float
    body_was_html: bool

    artifact_type = "email"

    def to_dict(self) -> Dict:
        return asdict(self)

    def summary(self) -> str:
        return "\n".join([
            f"- Sender domain: {self.sender_domain or 'unknown'}",
            f"- Official sender domain: {self.sender_is_official}",
            f"- Free mailbox sender: {self.sender_is_consumer_mailbox}",
            f"- Suspicious sender patterns: {', '.join(self.sender_patterns) or 'none'}",
            f"- Brands claimed by sender: {', '.join(self.spoofed_brands) or 'none'}",
            f"- Brands mentioned by non-official sender: {', '.join(self.impersonated_brands) or 'none'}",
            f"- Urgency keywords: {', '.join(self.urgency_keywords) or 'none'}",
            f"- Verification keywords: {', '.join(self.verification_keywords) or 'none'}",
            f"- Threat keywords: {', '.join(self.threat_keywords) or 'none'}",
            f"- Links: {len(self.links)} ({len(self.suspicious_links)} suspicious)",
        ])


@dataclass(frozen=True)
class LogoFeatures:
    image_url: str
    source_kind: str
    hostname: str
    has_ip_address: bool
    suspicious_tld: Optional[str]
    phishing_keywords: Tuple[str, ...]
    brand_mentions: Tuple[str, ...]
    off_brand_mentions: Tuple[str, ...]
    is_known_safe: bool
    detected_brand: Optional[str]

    artifact_type = "logo"

    @property
    def is_unverifiable_source(self) -> bool:
        return self.source_kind in ('base64', 'local')

    def to_dict(self) -> Dict:
        return asdict(self)

    def summary(self) -> str:
        return "\n".join([
            f"- Source: {self.source_kind}",
            f"- Host: {self.hostname or 'none'}",
            f"- Brands in reference: {', '.join(self.brand_mentions) or 'none'}",
            f"- Hosted on official brand domain: {bool(self.brand_mentions) and not self.off_brand_mentions}",
            f"- Known safe host: {self.is_known_safe}",
            f"- Phishing keywords: {', '.join(self.phishing_keywords) or 'none'}",
        ])


# ============================================================================
# EXTRACTOR
# ============================================================================

class FeatureExtractor:
    """Pure, total mapping from an artifact to its feature record."""

    def __init__(self, dictionaries: PhishingDictionaries):
        self.dictionaries = dictionaries

    def extract(self, artifact):
        if isinstance(artifact, UrlInput):
            return self.extract_url(artifact)
        if isinstance(artifact, EmailInput):
            return self.extract_email(artifact)
        if isinstance(artifact, LogoInput):
            return self.extract_logo(artifact)
        raise TypeError(f"Unsupported artifact: {type(artifact).__name__}")

    # ------------------------------------------------------------------
    # URL
    # ------------------------------------------------------------------

    def extract_url(self, artifact: UrlInput) -> UrlFeatures:
        raw = artifact.url.strip()
        scheme_assumed = not _SCHEME_PATTERN.match(raw)
        candidate = f"https://{raw}" if scheme_assumed else raw

        try:
            parts = urlsplit(candidate)
            hostname = (parts.hostname or '').lower()
            port = parts.port
            if not hostname:
                raise ValueError("URL has no hostname")
        except ValueError:
            return self._url_fallback(raw, scheme_assumed)

        d = self.dictionaries
        is_ip = is_ip_host(hostname)
        is_safe = d.is_known_safe(hostname)
        mentions = d.brands_in(f"{hostname}{parts.path}")
        off_brand = self._off_brand(mentions, hostname, is_safe)

        return UrlFeatures(
            url=raw,
            scheme_assumed=scheme_assumed,
            has_https=not scheme_assumed and parts.scheme.lower() == 'https',
            has_ip_address=is_ip,
            suspicious_tld=None if is_ip else d.suspicious_tld_of(hostname),
            suspicious_keywords=self._url_keywords(raw, off_brand),
            hostname=hostname,
            registered_domain=registered_domain_of(hostname),
            domain_length=len(hostname),
            path_length=len(parts.path),
            query_length=len(parts.query),
            num_subdomains=0 if is_ip else max(0, len(hostname.split('.')) - 2),
            port=port,
            has_nonstandard_port=port is not None and port not in (80, 443),
            consonant_ratio=round(consonant_ratio(hostname), 4),
            brand_mentions=mentions,
            off_brand_mentions=off_brand,
            is_known_safe=is_safe,
            parse_failed=False,
            **self._url_counts(raw),
        )

    def _url_fallback(self, raw: str, scheme_assumed: bool) -> UrlFeatures:
        """String-level features when the URL cannot be parsed."""
        d = self.dictionaries
        lowered = raw.lower()
        mentions = d.brands_in(lowered)
        off_brand = self._off_brand(mentions, '', False)
        suspicious_tld = next((tld for tld in d.suspicious_tlds if tld in lowered), None)

        return UrlFeatures(
            url=raw,
            scheme_assumed=scheme_assumed,
            has_https=lowered.startswith('https://'),
            has_ip_address=_IPV4_PATTERN.search(raw) is not None,
            suspicious_tld=suspicious_tld,
            suspicious_keywords=self._url_keywords(raw, off_brand),
            hostname='',
            registered_domain='',
            domain_length=0,
            path_length=0,
            query_length=0,
            num_subdomains=0,
            port=None,
            has_nonstandard_port=False,
            consonant_ratio=round(consonant_ratio(raw), 4),
            brand_mentions=mentions,
            off_brand_mentions=off_brand,
            is_known_safe=False,
            parse_failed=True,
            **self._url_counts(raw),
        )

    @staticmethod
    def _url_counts(raw: str) -> Dict:
        return {
            'length': len(raw),
            'num_dots': raw.count('.'),
            'num_hyphens': raw.count('-'),
            'num_underscores': raw.count('_'),
            'num_slashes': raw.count('/'),
            'num_digits': sum(1 for c in raw if c.isdigit()),
            'num_at_symbols': raw.count('@'),
            'has_encoded_chars': _ENCODED_PATTERN.search(raw) is not None,
            'entropy': round(shannon_entropy(raw), 4),
            'digit_ratio': round(digit_ratio(raw), 4),
        }

    def _url_keywords(self, raw: str, off_brand: Tuple[str, ...]) -> Tuple[str, ...]:
        # Brand names only count when they appear away from the brand's own hosts
        terms = list(find_terms(raw, self.dictionaries.url_keywords))
        terms.extend(b for b in off_brand if b not in terms)
        return tuple(terms)

    def _off_brand(self, mentions: Tuple[str, ...], host: str, is_safe: bool) -> Tuple[str, ...]:
        if is_safe:
            return ()
        return tuple(b for b in mentions if not self.dictionaries.is_official_host(host, b))

    # ------------------------------------------------------------------
    # Email
    # ------------------------------------------------------------------

    def extract_email(self, artifact: EmailInput) -> EmailFeatures:
        d = self.dictionaries
        sender = artifact.sender.strip()
        sender_domain = sender_domain_of(sender)
        subject = artifact.subject
        body_text, hrefs, was_html = self._body_text(artifact.body)
        content = f"{subject}\n{body_text}"

        # Free mailboxes are official for nobody, whoever hosts them
        is_consumer = d.is_consumer_mailbox(sender_domain)
        sender_is_official = not is_consumer and d.is_known_safe(sender_domain)

        def official_for(brand):
            return not is_consumer and d.is_official_host(sender_domain, brand)

        # On a free mailbox the domain names the provider, not the sender
        claimed = sender.rsplit('@', 1)[0] if is_consumer else sender
        spoofed = tuple(b for b in d.brands_in(claimed) if not official_for(b))
        spoofed_in_domain = () if is_consumer else tuple(b for b in spoofed if b in sender_domain)
        # An official sender naming another brand is not impersonating it
        impersonated = () if sender_is_official else tuple(
            b for b in d.brands_in(content) if not official_for(b)
        )

        links = self._links(body_text, hrefs)

        return EmailFeatures(
            sender=sender,
            sender_domain=sender_domain,
            sender_is_official=sender_is_official,
            sender_is_consumer_mailbox=is_consumer,
            sender_suspicious_tld=d.suspicious_tld_of(sender_domain) if sender_domain else None,
            sender_patterns=() if sender_is_official else self._sender_patterns(sender, sender_domain),
            spoofed_brands=spoofed,
            spoofed_in_domain=spoofed_in_domain,
            impersonated_brands=impersonated,
            urgency_keywords=find_terms(content, d.urgency_terms),
            verification_keywords=find_terms(content, d.verification_terms),
            threat_keywords=find_terms(content, d.threat_terms),
            money_keywords=find_terms(content, d.money_terms),
            links=links,
            suspicious_links=tuple(link for link in links if self._is_suspicious_link(link)),
            grammar_markers=find_terms(content, d.grammar_markers),
            benign_subject_markers=find_terms(subject, d.benign_subject_terms),
            exclamation_count=content.count('!'),
            subject_uppercase_ratio=round(uppercase_ratio(subject), 4),
            body_length=len(body_text),
            body_entropy=round(shannon_entropy(body_text), 4),
            body_digit_ratio=round(digit_ratio(body_text), 4),
            body_was_html=was_html,
        )

    def _sender_patterns(self, sender: str, sender_domain: str) -> Tuple[str, ...]:
        patterns = list(find_terms(sender, self.dictionaries.sender_pattern_terms))
        if '-' in sender_domain:
            patterns.append('hyphenated domain')
        return tuple(patterns)

    @staticmethod
    def _body_text(body: str) -> Tuple[str, List[str], bool]:
        """Plain text of the body plus anchor targets when it is HTML."""
        if not _HTML_PATTERN.search(body):
            return body, [], False
        soup = BeautifulSoup(body, 'html.parser')
        hrefs = [a['href'] for a in soup.find_all('a', href=True)]
        return soup.get_text(separator=' '), hrefs, True

    @staticmethod
    def _links(text: str, hrefs: List[str]) -> Tuple[str, ...]:
        for pattern, replacement in _DEFANG_PATTERNS:
            text = re.sub(pattern, replacement, text, flags=re.IGNORECASE)

        links = []
        for candidate in list(hrefs) + _LINK_PATTERN.findall(text):
            link = candidate.strip().rstrip('.,;:!?)]>"\'')
            if not link.lower().startswith(('http://', 'https://', 'ftp://', 'www.')):
                continue
            if link not in links:
                links.append(link)
            if len(links) >= _MAX_LINKS:
                break
        return tuple(links)

    def _is_suspicious_link(self, link: str) -> bool:
        d = self.dictionaries
        host = hostname_of(link)
        if not host:
            return True
        if is_ip_host(host) or d.suspicious_tld_of(host) or d.is_shortener(host):
            return True
        netloc = link.split('://', 1)[-1].split('/', 1)[0]
        if '@' in netloc:
            return True
        if d.is_known_safe(host):
            return False
        return any(not d.is_official_host(host, b) for b in d.brands_in(host))

    # ------------------------------------------------------------------
    # Logo
    # ------------------------------------------------------------------

    def extract_logo(self, artifact: LogoInput) -> LogoFeatures:
        d = self.dictionaries
        if artifact.is_base64:
            # Embedded payloads are never scanned for keywords
            image_url, source_kind = '', 'base64'
        else:
            image_url = artifact.image_url.strip()
            is_remote = image_url.lower().startswith(('http://', 'https://'))
            source_kind = 'url' if is_remote else 'local'

        host = hostname_of(image_url) if source_kind == 'url' else ''
        is_ip = is_ip_host(host)
        is_safe = d.is_known_safe(host)
        mentions = d.brands_in(image_url)

        return LogoFeatures(
            image_url=image_url,
            source_kind=source_kind,
            hostname=host,
            has_ip_address=is_ip,
            suspicious_tld=None if is_ip or not host else d.suspicious_tld_of(host),
            phishing_keywords=find_terms(image_url, d.logo_keywords),
            brand_mentions=mentions,
            off_brand_mentions=self._off_brand(mentions, host, is_safe),
            is_known_safe=is_safe,
            detected_brand=mentions[0] if mentions else None,
        )
