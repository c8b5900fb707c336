from config import ProviderSettings
from utils import certificate as certificate_mod
from utils.certificate import CertificateGenerator, certificate_filename, format_joined_date, load_logo

SETTINGS = ProviderSettings(foundation_name="Veer Bhagat Singh Foundation", logo_path="static/logo.jpg")


def test_same_inputs_give_identical_pdf(make_png):
    logo = make_png((120, 120))
    gen = CertificateGenerator(SETTINGS, fetch_logo=lambda source: logo)

    first = gen.generate("Asha Rao", "2026-10-19T05:30:00.000Z", "Pranay Rode")
    second = gen.generate("Asha Rao", "2026-10-19T05:30:00.000Z", "Pranay Rode")

    assert first.startswith(b"%PDF")
    assert first == second


def test_different_member_changes_output():
    gen = CertificateGenerator(SETTINGS, fetch_logo=lambda source: None)
    assert gen.generate("Asha Rao", "2026-10-19", "Pranay Rode") != gen.generate("Ravi Kumar", "2026-10-19", "Pranay Rode")


def test_logo_failure_still_produces_certificate():
    def broken(source):
        raise OSError("logo host down")

    pdf = CertificateGenerator(SETTINGS, fetch_logo=broken).generate("Asha Rao", "2026-10-19", "Pranay Rode")
    assert pdf.startswith(b"%PDF")
    assert pdf.rstrip().endswith(b"%%EOF")


def test_description_names_the_foundation():
    lines = CertificateGenerator(SETTINGS, fetch_logo=lambda s: None).description_lines()
    assert lines[0] == "has been accepted as a valued member of Veer Bhagat Singh Foundation."
    assert len(lines) == 4


def test_certificate_filename():
    assert certificate_filename("Asha Rao") == "Asha_Rao_Certificate.pdf"
    assert certificate_filename("  Mary  Ann Lee ") == "Mary_Ann_Lee_Certificate.pdf"


def test_format_joined_date():
    assert format_joined_date("2026-10-19T05:30:00.000Z") == "19 October 2026"
    assert format_joined_date("2026-03-05") == "5 March 2026"
    assert format_joined_date("someday") == "someday"


def test_load_logo_from_url_or_path(monkeypatch, tmp_path):
    class Resp:
        content = b"\x89PNG logo"

        def raise_for_status(self):
            pass

    seen = []
    monkeypatch.setattr(certificate_mod.requests, "get", lambda url, timeout: seen.append(url) or Resp())
    assert load_logo("https://cdn.example.org/logo.png") == b"\x89PNG logo"
    assert seen == ["https://cdn.example.org/logo.png"]

    local = tmp_path / "logo.jpg"
    local.write_bytes(b"jpeg bytes")
    assert load_logo(str(local)) == b"jpeg bytes"
    assert load_logo("") is None
