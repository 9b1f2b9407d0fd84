"""Tests for feature extraction."""

import json

import pytest

from phishlens.core.artifacts import (
    EmailInput,
    InvalidArtifactError,
    LogoInput,
    UrlInput,
    artifact_from_payload,
)
from phishlens.core.dictionaries import PhishingDictionaries, load_dictionaries
from phishlens.core.features import shannon_entropy


class TestArtifacts:
    def test_url_required(self):
        with pytest.raises(InvalidArtifactError, match="URL is required"):
            UrlInput(url="   ")

    def test_email_requires_all_fields(self):
        with pytest.raises(InvalidArtifactError):
            EmailInput(sender="a@b.com", subject="", body="hello")

    def test_logo_requires_one_source(self):
        with pytest.raises(InvalidArtifactError):
            LogoInput()

    def test_logo_rejects_both_sources(self):
        with pytest.raises(InvalidArtifactError, match="not both"):
            LogoInput(image_url="https://example.com/a.png", base64_image="iVBORw0KGgo=")

    def test_logo_echo_hides_upload(self):
        assert LogoInput(base64_image="iVBORw0KGgo=").echo() == {"imageUrl": "base64-image"}

    def test_batch_payload_dispatch(self):
        artifact = artifact_from_payload({"type": "email", "sender": "a@b.com",
                                          "subject": "Hi", "body": "Hello"})
        assert isinstance(artifact, EmailInput)

    def test_batch_payload_unknown_type(self):
        with pytest.raises(InvalidArtifactError):
            artifact_from_payload({"type": "fax"})


class TestUrlFeatures:
    def test_ip_literal(self, extractor):
        features = extractor.extract(UrlInput("http://192.168.1.5/paypal-login-verify"))
        assert features.has_ip_address
        assert not features.has_https
        assert features.suspicious_tld is None
        assert "login" in features.suspicious_keywords
        assert "paypal" in features.off_brand_mentions

    def test_missing_scheme_is_not_insecure(self, extractor):
        features = extractor.extract(UrlInput("example.com/login"))
        assert features.scheme_assumed
        assert not features.has_https
        assert features.hostname == "example.com"

    def test_brand_on_official_host_is_not_a_keyword(self, extractor):
        features = extractor.extract(UrlInput("https://www.amazon.com/gp/help"))
        assert features.is_known_safe
        assert features.brand_mentions == ("amazon",)
        assert features.off_brand_mentions == ()
        assert features.suspicious_keywords == ()

    def test_suspicious_tld_and_subdomains(self, extractor):
        features = extractor.extract(UrlInput("https://a.b.c.d.secure-paypal.xyz/"))
        assert features.suspicious_tld == ".xyz"
        assert features.num_subdomains == 4
        assert features.registered_domain == "secure-paypal.xyz"

    def test_nonstandard_port(self, extractor):
        features = extractor.extract(UrlInput("http://example.com:8080/"))
        assert features.port == 8080
        assert features.has_nonstandard_port

    def test_unparseable_url_falls_back(self, extractor):
        features = extractor.extract(UrlInput("http://[::1/paypal"))
        assert features.parse_failed
        assert features.hostname == ""
        assert features.length == len("http://[::1/paypal")
        assert "paypal" in features.off_brand_mentions

    def test_extraction_is_idempotent(self, extractor):
        artifact = UrlInput("http://secure-login.example.tk/verify?id=1")
        assert extractor.extract(artifact) == extractor.extract(artifact)


class TestEmailFeatures:
    def test_spoofed_sender_domain(self, extractor):
        features = extractor.extract(EmailInput(
            sender="support@paypal-security.net",
            subject="URGENT: Your account will be suspended - Verify Now",
            body="Click http://paypal-verify.xyz/login within 24 hours.",
        ))
        assert features.sender_domain == "paypal-security.net"
        assert features.spoofed_in_domain == ("paypal",)
        assert "urgent" in features.urgency_keywords
        assert "suspended" in features.threat_keywords
        assert features.suspicious_links == ("http://paypal-verify.xyz/login",)

    def test_official_sender_does_not_impersonate(self, extractor):
        features = extractor.extract(EmailInput(
            sender="no-reply@paypal.com",
            subject="Receipt for your payment",
            body="You sent a payment to Example Store via PayPal.",
        ))
        assert features.sender_is_official
        assert features.impersonated_brands == ()
        assert features.benign_subject_markers == ("receipt",)

    def test_html_body_links(self, extractor):
        features = extractor.extract(EmailInput(
            sender="alerts@example.org",
            subject="Notice",
            body='<html><body><p>Dear customer</p><a href="http://bit.ly/x1">open</a></body></html>',
        ))
        assert features.body_was_html
        assert "http://bit.ly/x1" in features.links
        assert "http://bit.ly/x1" in features.suspicious_links
        assert "dear customer" in features.grammar_markers

    def test_defanged_links_are_refanged(self, extractor):
        features = extractor.extract(EmailInput(
            sender="a@example.org", subject="hi", body="see hxxp://evil[.]top/pay",
        ))
        assert features.links == ("http://evil.top/pay",)

    def test_suspicious_sender_domain(self, extractor):
        features = extractor.extract(EmailInput(
            sender="billing@account-notice.xyz",
            subject="Invoice attached",
            body="Please find your invoice attached.",
        ))
        assert features.sender_suspicious_tld == ".xyz"
        assert features.sender_patterns == ("account", "hyphenated domain")

    def test_official_sender_has_no_patterns(self, extractor):
        features = extractor.extract(EmailInput(
            sender="no-reply@paypal.com", subject="Receipt", body="Thanks.",
        ))
        assert features.sender_patterns == ()
        assert features.sender_suspicious_tld is None


class TestFreeMailboxSenders:
    def test_free_mailbox_is_not_official(self, extractor):
        features = extractor.extract(EmailInput(
            sender="security@outlook.com",
            subject="Amazon account notice",
            body="Please confirm your credit card details.",
        ))
        assert features.sender_is_consumer_mailbox
        assert not features.sender_is_official
        assert features.impersonated_brands == ("amazon",)

    def test_provider_brand_counts_as_impersonation(self, extractor):
        features = extractor.extract(EmailInput(
            sender="helpdesk@outlook.com",
            subject="Microsoft password expiry",
            body="Your Microsoft mailbox is full.",
        ))
        assert features.impersonated_brands == ("microsoft",)

    def test_personal_icloud_sender(self, extractor):
        features = extractor.extract(EmailInput(
            sender="jane@icloud.com", subject="Lunch?", body="Are you free on Friday?",
        ))
        assert features.spoofed_brands == ()
        assert features.spoofed_in_domain == ()
        assert features.impersonated_brands == ()

    def test_brand_in_local_part(self, extractor):
        features = extractor.extract(EmailInput(
            sender="microsoft-support@outlook.com", subject="Notice", body="Hello",
        ))
        assert features.spoofed_brands == ("microsoft",)
        assert features.spoofed_in_domain == ()


class TestLogoFeatures:
    def test_base64_source(self, extractor):
        features = extractor.extract(LogoInput(base64_image="iVBORw0KGgoAAAANSUhEUg=="))
        assert features.source_kind == "base64"
        assert features.is_unverifiable_source
        assert features.brand_mentions == ()

    def test_brand_off_official_host(self, extractor):
        features = extractor.extract(LogoInput(image_url="https://cdn.example.net/paypal-logo.png"))
        assert features.detected_brand == "paypal"
        assert features.off_brand_mentions == ("paypal",)

    def test_local_path(self, extractor):
        features = extractor.extract(LogoInput(image_url="images/fake_netflix.png"))
        assert features.source_kind == "local"
        assert features.phishing_keywords == ("fake",)


class TestDictionaries:
    def test_entropy_of_uniform_text(self):
        assert shannon_entropy("abcd") == pytest.approx(2.0)
        assert shannon_entropy("") == 0.0

    def test_known_safe_suffix(self, dictionaries):
        assert dictionaries.is_known_safe("www.irs.gov")
        assert not dictionaries.is_known_safe("gov.example.com")

    def test_load_overrides(self, tmp_path):
        path = tmp_path / "dictionaries.json"
        path.write_text(json.dumps({
            "url_keywords": ["Foo"],
            "brand_domains": {"Acme": ["acme.test"]},
            "bogus": [1],
        }))
        loaded = load_dictionaries(str(path))
        assert loaded.url_keywords == ("foo",)
        assert loaded.is_official_host("shop.acme.test", "acme")
        assert loaded.logo_keywords == PhishingDictionaries().logo_keywords

    def test_missing_file_keeps_builtin(self, tmp_path):
        assert load_dictionaries(str(tmp_path / "nope.json")).url_keywords == PhishingDictionaries().url_keywords

    def test_invalid_file_keeps_builtin(self, tmp_path):
        path = tmp_path / "broken.json"
        path.write_text("{not json")
        assert load_dictionaries(str(path)).url_keywords == PhishingDictionaries().url_keywords

    def test_string_table_keeps_builtin(self, tmp_path):
        path = tmp_path / "dictionaries.json"
        path.write_text(json.dumps({"url_keywords": "login"}))
        loaded = load_dictionaries(str(path))
        assert loaded.url_keywords == PhishingDictionaries().url_keywords
        assert "l" not in loaded.url_keywords

    def test_string_brand_domains_keeps_builtin(self, tmp_path):
        path = tmp_path / "dictionaries.json"
        path.write_text(json.dumps({"brand_domains": {"acme": "acme.test"}}))
        loaded = load_dictionaries(str(path))
        assert loaded.brand_domains == PhishingDictionaries().brand_domains

    def test_string_table_rejected(self):
        with pytest.raises(TypeError, match="url_keywords"):
            PhishingDictionaries(url_keywords="login")
