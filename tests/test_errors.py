from tollroute.errors import AppError, InvalidCoordinate, SpatialQueryFailure


def test_app_error_keeps_class_defaults_when_not_overridden():
    error = AppError(message="boom")
    assert (error.code, error.status_code, error.message) == ("internal_error", 500, "boom")


def test_app_error_overrides_code_and_status():
    error = AppError("invalid_direction", "Unknown direction of travel: NE.", 400)
    assert (error.code, error.status_code) == ("invalid_direction", 400)
    assert str(error) == "Unknown direction of travel: NE."


def test_subclasses_carry_their_own_code():
    assert (InvalidCoordinate("bad").code, InvalidCoordinate("bad").status_code) == ("invalid_coordinate", 400)
    assert SpatialQueryFailure("down").status_code == 503
