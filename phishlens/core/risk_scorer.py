from typing import Dict, Tuple

from phishlens.core.rules import Override, Rule, RuleEvaluation, RuleTable, ScoreResult, evaluate

# Score a known-safe artifact receives when no other rule fired
URL_SAFE_FLOOR = 5
EMAIL_SAFE_FLOOR = 12
LOGO_SAFE_FLOOR = 8

# Minimum combined score forced by a brand-spoof override
URL_SPOOF_FLOOR = 85
EMAIL_SPOOF_FLOOR = 85
LOGO_SPOOF_FLOOR = 92


def _listing(items: Tuple[str, ...], limit: int = 3) -> str:
    shown = ', '.join(items[:limit])
    if len(items) > limit:
        shown += f" (+{len(items) - limit} more)"
    return shown


# ============================================================================
# URL RULES
# ============================================================================

URL_RULES = RuleTable(
    artifact_type='url',
    rules=(
        Rule('ip_literal', lambda f: f.has_ip_address, 25,
             "IP address used instead of domain name"),
        # A scheme we filled in ourselves is neither good nor bad evidence
        Rule('no_https', lambda f: not f.scheme_assumed and not f.has_https, 10,
             "Insecure HTTP connection"),
        Rule('suspicious_tld', lambda f: f.suspicious_tld is not None, 20,
             lambda f: f"Suspicious top-level domain detected: {f.suspicious_tld}"),
        Rule('keywords', lambda f: len(f.suspicious_keywords) > 0,
             lambda f: min(25, len(f.suspicious_keywords) * 8),
             lambda f: f"Phishing keywords detected: {_listing(f.suspicious_keywords)}"),
        Rule('long_url', lambda f: f.length > 100,
             lambda f: min(15, (f.length - 100) / 20 * 5),
             lambda f: f"Abnormally long URL ({f.length} characters)"),
        Rule('subdomains', lambda f: f.num_subdomains > 3,
             lambda f: min(15, (f.num_subdomains - 3) * 5),
             lambda f: f"Multiple subdomain levels detected ({f.num_subdomains})"),
        Rule('hyphens', lambda f: f.num_hyphens > 3,
             lambda f: min(10, (f.num_hyphens - 3) * 3),
             lambda f: f"Excessive hyphens in URL ({f.num_hyphens})"),
        Rule('at_symbol', lambda f: f.num_at_symbols > 0, 20,
             "URL contains @ symbol (potential redirect attack)"),
        Rule('encoded_chars', lambda f: f.has_encoded_chars, 10,
             "URL contains encoded characters"),
        Rule('port', lambda f: f.has_nonstandard_port, 15,
             lambda f: f"Non-standard port number in URL ({f.port})"),
        Rule('entropy', lambda f: f.entropy > 4.5, 10,
             "High entropy domain (potentially auto-generated)"),
        Rule('digit_ratio', lambda f: f.digit_ratio > 0.3, 10,
             "High ratio of digits in URL"),
    ),
    overrides=(
        Override('brand_spoof', lambda f: len(f.off_brand_mentions) > 0, URL_SPOOF_FLOOR,
                 lambda f: f"Brand name used outside its official domains: {_listing(f.off_brand_mentions)}"),
    ),
    safe_predicate=lambda f: f.is_known_safe,
    safe_floor=URL_SAFE_FLOOR,
    safe_message=lambda f: f"Recognized safe domain: {f.hostname}",
)


# ============================================================================
# EMAIL RULES
# ============================================================================

EMAIL_RULES = RuleTable(
    artifact_type='email',
    rules=(
        Rule('spoofed_sender', lambda f: len(f.spoofed_brands) > 0, 30,
             lambda f: f"Sender claims to be {_listing(f.spoofed_brands)} but uses domain "
                       f"{f.sender_domain or 'unknown'}"),
        Rule('sender_suspicious_tld', lambda f: f.sender_suspicious_tld is not None, 20,
             lambda f: f"Sender domain uses suspicious top-level domain: {f.sender_suspicious_tld}"),
        Rule('sender_pattern', lambda f: len(f.sender_patterns) > 0, 15,
             lambda f: f"Suspicious sender address pattern: {_listing(f.sender_patterns)}"),
        Rule('brand_impersonation', lambda f: len(f.impersonated_brands) > 0, 25,
             lambda f: f"Brand impersonation: mentions {_listing(f.impersonated_brands)} "
                       f"from non-official sender"),
        Rule('urgency', lambda f: len(f.urgency_keywords) > 0,
             lambda f: min(20, len(f.urgency_keywords) * 7),
             lambda f: f"Urgency language: {_listing(f.urgency_keywords)}"),
        Rule('verification', lambda f: len(f.verification_keywords) > 0, 15,
             lambda f: f"Requests verification or credentials: {_listing(f.verification_keywords)}"),
        Rule('threat', lambda f: len(f.threat_keywords) > 0, 20,
             lambda f: f"Threatening language: {_listing(f.threat_keywords)}"),
        Rule('suspicious_links', lambda f: len(f.suspicious_links) > 0, 20,
             lambda f: f"Suspicious links: {_listing(f.suspicious_links, 2)}"),
        Rule('money_urgency',
             lambda f: len(f.money_keywords) > 0 and len(f.urgency_keywords) > 0, 15,
             lambda f: f"Money request combined with urgency: {_listing(f.money_keywords)}"),
        Rule('poor_grammar', lambda f: len(f.grammar_markers) > 0, 10,
             lambda f: f"Generic greeting or poor grammar: {_listing(f.grammar_markers)}"),
        Rule('transactional_subject', lambda f: len(f.benign_subject_markers) > 0, -20,
             lambda f: f"Transactional subject ({_listing(f.benign_subject_markers)})",
             evidential=False),
    ),
    overrides=(
        Override('spoofed_domain', lambda f: len(f.spoofed_in_domain) > 0, EMAIL_SPOOF_FLOOR,
                 lambda f: f"Sender domain {f.sender_domain} imitates {_listing(f.spoofed_in_domain)}"),
    ),
    safe_predicate=lambda f: f.sender_is_official,
    safe_floor=EMAIL_SAFE_FLOOR,
    safe_message=lambda f: f"Official sender domain: {f.sender_domain}",
)


# ============================================================================
# LOGO RULES
# ============================================================================

LOGO_RULES = RuleTable(
    artifact_type='logo',
    rules=(
        Rule('ip_literal', lambda f: f.has_ip_address, 25,
             "Image hosted on a raw IP address"),
        Rule('unverifiable_source', lambda f: f.is_unverifiable_source, 30,
             "Local/base64 image (source cannot be verified)",
             evidential=False),
        Rule('suspicious_tld', lambda f: f.suspicious_tld is not None, 20,
             lambda f: f"Image hosted on suspicious top-level domain: {f.suspicious_tld}"),
        Rule('keywords', lambda f: len(f.phishing_keywords) > 0, 50,
             lambda f: f"URL contains phishing keywords: {_listing(f.phishing_keywords)}"),
    ),
    overrides=(
        Override('brand_off_source', lambda f: len(f.off_brand_mentions) > 0, LOGO_SPOOF_FLOOR,
                 lambda f: f"{f.off_brand_mentions[0].capitalize()} brand on non-official source"),
    ),
    safe_predicate=lambda f: f.is_known_safe,
    safe_floor=LOGO_SAFE_FLOOR,
    safe_message=lambda f: f"Known safe image host: {f.hostname}",
)


class RiskScorer:
    def __init__(self, tables: Dict[str, RuleTable] = None):
        """
        Rule-based scorer dispatching on the feature record's artifact type.

        Args:
            tables: rule tables keyed by artifact type (defaults to the built-in ones)
        """
        self.tables = tables or {
            'url': URL_RULES,
            'email': EMAIL_RULES,
            'logo': LOGO_RULES,
        }

    def evaluate(self, features) -> RuleEvaluation:
        """Score plus the provenance decisions the combiner needs"""
        table = self.tables.get(features.artifact_type)
        if table is None:
            raise TypeError(f"No rule table for artifact type: {features.artifact_type}")
        return evaluate(table, features)

    def score(self, features) -> ScoreResult:
        return self.evaluate(features).result
