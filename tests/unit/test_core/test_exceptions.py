"""Tests for core exceptions."""

from file_replicator.core import exceptions as exc


def test_app_exception_defaults_title() -> None:
    error = exc.AppException(status_code=400, detail="bad")
    assert error.title == "Bad Request"
    assert error.extra == {}
    assert str(error) == "bad"


def test_app_exception_to_dict_merges_extra() -> None:
    error = exc.AppException(
        status_code=404,
        detail="Object not found",
        type="object-not-found",
        instance="text/hello.txt",
        extra={"backend": "minio"},
    )
    assert error.to_dict() == {
        "type": "object-not-found",
        "title": "Not Found",
        "status": 404,
        "detail": "Object not found",
        "instance": "text/hello.txt",
        "backend": "minio",
    }


def test_unknown_status_gets_generic_title() -> None:
    assert exc.AppException(status_code=499, detail="odd").title == "Error"


def test_configuration_error_fields() -> None:
    error = exc.ConfigurationError(detail="no backends", extra={"backends": []})
    assert error.status_code == 500
    assert error.type == "configuration-error"
    assert error.title == "Configuration Error"
    assert error.extra["backends"] == []
