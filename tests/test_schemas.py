"""
Tests for registration input validation
"""

import pytest
from pydantic import ValidationError

from leaderboard.schemas.startup import StartupCreate, sanitize_string


def payload(**overrides):
    data = {
        "name": "Acme Apps",
        "appStoreId": "284882215",
        "revenuecatApiKey": "sk_test_abcdef123",
        "projectId": "proj1a2b3c",
    }
    data.update(overrides)
    return {key: value for key, value in data.items() if value is not None}


def first_error(**overrides) -> str:
    with pytest.raises(ValidationError) as exc_info:
        StartupCreate(**payload(**overrides))
    return exc_info.value.errors()[0]["msg"]


class TestSanitizeString:

    @pytest.mark.parametrize("raw,expected", [
        ("  Acme   Apps  ", "Acme Apps"),
        ("<b>Acme</b>", "Acme"),
        ("Acme\x00\x07Apps", "AcmeApps"),
        ("javascript:alert(1)", "alert(1)"),
        ("Acme onclick=steal()", "Acme steal()"),
        ("line\nbreak\ttab", "line break tab"),
    ])
    def test_sanitize(self, raw, expected):
        assert sanitize_string(raw) == expected


class TestStartupCreate:

    def test_valid_payload(self):
        request = StartupCreate(**payload(
            name="  Acme <i>Apps</i> ",
            websiteUrl="https://acme.example.com",
            founderUsername="@acme_dev"
        ))

        assert request.name == "Acme Apps"
        assert request.website_url == "https://acme.example.com"
        assert request.founder_username == "acme_dev"
        assert request.revenuecat_api_key == "sk_test_abcdef123"
        assert request.project_id == "proj1a2b3c"

    def test_field_names_are_accepted(self):
        request = StartupCreate(
            name="Acme",
            app_store_id="1",
            revenuecat_api_key="sk_test_abcdef123",
            project_id="proj1a2b3c"
        )
        assert request.app_store_id == "1"

    def test_name_required(self):
        assert "Name is required" in first_error(name="   ")

    def test_name_too_long(self):
        assert "100 characters or less" in first_error(name="x" * 101)

    def test_name_invalid_characters(self):
        assert "invalid characters" in first_error(name="Acme {Apps}")

    def test_project_id_too_short(self):
        assert "at least 4 characters" in first_error(projectId="abc")

    def test_project_id_characters(self):
        assert "Project ID contains invalid characters" in first_error(projectId="proj 1/2")

    @pytest.mark.parametrize("api_key,message", [
        ("sk_short", "API key is too short"),
        ("pk_test_abcdef123", "must start with sk_"),
        ("sk_test_abc-def-123", "API key contains invalid characters"),
    ])
    def test_api_key_rules(self, api_key, message):
        assert message in first_error(revenuecatApiKey=api_key)

    @pytest.mark.parametrize("url,message", [
        ("ftp://acme.example.com", "http or https"),
        ("https://localhost:3000", "private/local"),
        ("http://192.168.1.10", "private/local"),
        ("http://10.0.0.1/admin", "private/local"),
        ("https://", "Invalid URL format"),
    ])
    def test_website_rules(self, url, message):
        assert message in first_error(websiteUrl=url)

    def test_app_store_id_digits_only(self):
        assert "only numbers" in first_error(appStoreId="id284882215")

    def test_founder_username_rules(self):
        assert "letters, numbers, and underscores" in first_error(founderUsername="acme-dev")

    def test_icon_source_required(self):
        message = first_error(appStoreId=None)
        assert "Either App Store ID or Website is required" in message

    def test_website_alone_is_enough(self):
        request = StartupCreate(**payload(appStoreId=None, websiteUrl="https://acme.example.com"))
        assert request.app_store_id is None

    def test_blank_optional_fields_become_none(self):
        request = StartupCreate(**payload(websiteUrl="   ", founderUsername="@"))
        assert request.website_url is None
        assert request.founder_username is None
