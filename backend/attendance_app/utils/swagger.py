"""Swagger/OpenAPI configuration for the application."""

SWAGGER_URL = '/api/docs'
API_URL = '/api/swagger.json'

SWAGGER_UI_CONFIG = {
    'app_name': "University Attendance API",
    'defaultModelsExpandDepth': -1,
    'docExpansion': 'list',
    'filter': True,
    'supportedSubmitMethods': ['get', 'post', 'put', 'delete'],
    'validatorUrl': None,
}

ROLES = ["student", "doctor", "admin", "super_admin"]
STATUSES = ["present", "absent", "late", "excused"]


def _json_body(required, properties):
    return {
        "required": True,
        "content": {
            "application/json": {
                "schema": {"type": "object", "required": required, "properties": properties}
            }
        }
    }


def _responses(success_code="200", description="OK", *error_codes):
    responses = {
        success_code: {
            "description": description,
            "content": {"application/json": {"schema": {"$ref": "#/components/schemas/Success"}}}
        }
    }
    for code in error_codes:
        responses[str(code)] = {"$ref": f"#/components/responses/E{code}"}
    return responses


def _op(tag, summary, success_code="200", errors=(401, 403), body=None, params=None, secured=True):
    operation = {
        "tags": [tag],
        "summary": summary,
        "responses": _responses(success_code, summary, *errors)
    }
    if body is not None:
        operation["requestBody"] = body
    if params:
        operation["parameters"] = params
    if not secured:
        operation["security"] = []
    return operation


def _path_id(name):
    return {"name": name, "in": "path", "required": True, "schema": {"type": "integer"}}


def _query(name, schema_type="string"):
    return {"name": name, "in": "query", "required": False, "schema": {"type": schema_type}}


PAGE_PARAMS = [_query("page", "integer"), _query("limit", "integer")]
RANGE_PARAMS = [_query("startDate"), _query("endDate")]
RECORD_FILTERS = [_query("groupId", "integer"), _query("studentId", "integer"),
                  _query("doctorId", "integer"), _query("status")] + RANGE_PARAMS

LECTURE_DETAILS = {
    "type": "object",
    "properties": {
        "subject": {"type": "string"},
        "lectureNumber": {"type": "integer"},
        "duration": {"type": "integer", "description": "Minutes"}
    }
}


def _crud_paths(base, tag, noun, item_param):
    """List/create on ``base`` and get/update/delete on ``base/{id}``."""
    item = f"{base}/{{{item_param}}}"
    return {
        base: {
            "get": _op(tag, f"List {noun}s", params=PAGE_PARAMS + [_query("search")]),
            "post": _op(tag, f"Create {noun}", "201", (400, 401, 403, 409),
                        body=_json_body([], {}))
        },
        item: {
            "get": _op(tag, f"Get {noun}", errors=(401, 403, 404), params=[_path_id(item_param)]),
            "put": _op(tag, f"Update {noun}", errors=(400, 401, 403, 404, 409),
                       body=_json_body([], {}), params=[_path_id(item_param)]),
            "delete": _op(tag, f"Delete {noun}", errors=(400, 401, 403, 404), params=[_path_id(item_param)])
        }
    }


def generate_swagger_spec():
    """Generate OpenAPI/Swagger specification."""
    paths = {
        "/auth/login": {
            "post": _op("Authentication", "User login", errors=(400, 401, 423), secured=False, body=_json_body(
                ["email", "password"],
                {
                    "email": {"type": "string", "format": "email"},
                    "password": {"type": "string"},
                    "rememberMe": {"type": "boolean"}
                }
            ))
        },
        "/auth/register": {
            "post": _op("Authentication", "Register a user (admin)", "201", (400, 401, 403, 409),
                        body=_json_body(["email", "password", "name", "role"], {
                            "email": {"type": "string", "format": "email"},
                            "password": {"type": "string", "minLength": 6},
                            "name": {"type": "string", "minLength": 2},
                            "role": {"type": "string", "enum": ["student", "doctor", "admin"]},
                            "additionalData": {"type": "object"}
                        }))
        },
        "/auth/logout": {"post": _op("Authentication", "Logout and clear cookies", errors=(401,))},
        "/auth/me": {"get": _op("Authentication", "Current user", errors=(401,))},
        "/auth/change-password": {
            "post": _op("Authentication", "Change password", errors=(400, 401),
                        body=_json_body(["currentPassword", "newPassword"], {
                            "currentPassword": {"type": "string"},
                            "newPassword": {"type": "string", "minLength": 6}
                        }))
        },
        "/auth/refresh-token": {
            "post": _op("Authentication", "Exchange a refresh token", errors=(401,),
                        body=_json_body(["refreshToken"], {"refreshToken": {"type": "string"}}))
        },
        "/attendance/scan": {
            "post": _op("Attendance", "Record attendance from a scanned QR code", "201",
                        (400, 401, 403, 404, 409), body=_json_body(["qrData", "groupId"], {
                            "qrData": {"type": "string"},
                            "groupId": {"type": "integer"},
                            "lectureDetails": LECTURE_DETAILS
                        }))
        },
        "/attendance/record": {
            "post": _op("Attendance", "Record attendance manually", "201", (400, 401, 403, 404, 409),
                        body=_json_body(["studentId", "groupId", "status", "lectureDate"], {
                            "studentId": {"type": "integer"},
                            "groupId": {"type": "integer"},
                            "status": {"type": "string", "enum": STATUSES},
                            "lectureDate": {"type": "string", "format": "date-time"},
                            "notes": {"type": "string", "maxLength": 500},
                            "lectureDetails": LECTURE_DETAILS
                        }))
        },
        "/attendance/bulk-record": {
            "post": _op("Attendance", "Record a list of students", errors=(400, 401, 403, 404),
                        body=_json_body(["groupId", "attendanceList"], {
                            "groupId": {"type": "integer"},
                            "lectureDate": {"type": "string", "format": "date-time"},
                            "attendanceList": {"type": "array", "items": {"type": "object"}},
                            "lectureDetails": LECTURE_DETAILS
                        }))
        },
        "/attendance": {"get": _op("Attendance", "List visible records", params=PAGE_PARAMS + RECORD_FILTERS)},
        "/attendance/stats": {"get": _op("Attendance", "Attendance statistics", params=RECORD_FILTERS)},
        "/attendance/{record_id}": {
            "put": _op("Attendance", "Update a record", errors=(400, 401, 403, 404),
                       params=[_path_id("record_id")], body=_json_body([], {
                           "status": {"type": "string", "enum": STATUSES},
                           "notes": {"type": "string"},
                           "lectureDetails": LECTURE_DETAILS
                       })),
            "delete": _op("Attendance", "Delete a record", errors=(401, 403, 404), params=[_path_id("record_id")])
        },
        "/groups/my-groups": {"get": _op("Groups", "Groups assigned to the caller")},
        "/doctors/dashboard": {"get": _op("Doctors", "Doctor dashboard")},
        "/doctors/{doctor_id}/assign-groups": {
            "post": _op("Doctors", "Replace assigned groups", errors=(400, 401, 403, 404),
                        params=[_path_id("doctor_id")],
                        body=_json_body(["groupIds"], {"groupIds": {"type": "array", "items": {"type": "integer"}}}))
        },
        "/students/my-qr-code": {"get": _op("Students", "Caller's QR code")},
        "/students/bulk": {
            "post": _op("Students", "Import students from CSV or Excel", errors=(400, 401, 403))
        },
        "/students/{student_id}/qr-code": {
            "get": _op("Students", "Student QR code", errors=(401, 403, 404), params=[_path_id("student_id")])
        },
        "/students/{student_id}/regenerate-qr": {
            "post": _op("Students", "Regenerate student QR code", errors=(401, 403, 404),
                        params=[_path_id("student_id")])
        },
        "/students/{student_id}/attendance": {
            "get": _op("Students", "Student attendance", errors=(401, 403, 404),
                       params=[_path_id("student_id")] + PAGE_PARAMS + RANGE_PARAMS)
        },
        "/students/{student_id}/profile": {
            "get": _op("Students", "Student profile with statistics", errors=(401, 403, 404),
                       params=[_path_id("student_id")])
        },
        "/reports/student-attendance/{student_id}": {
            "get": _op("Reports", "Student report", errors=(400, 401, 403, 404),
                       params=[_path_id("student_id")] + RANGE_PARAMS)
        },
        "/reports/group-attendance/{group_id}": {
            "get": _op("Reports", "Group report", errors=(400, 401, 403, 404),
                       params=[_path_id("group_id")] + RANGE_PARAMS)
        },
        "/reports/doctor-attendance/{doctor_id}": {
            "get": _op("Reports", "Doctor report", errors=(400, 401, 403, 404),
                       params=[_path_id("doctor_id")] + RANGE_PARAMS)
        },
        "/reports/department-attendance/{department_id}": {
            "get": _op("Reports", "Department report", errors=(400, 401, 403, 404),
                       params=[_path_id("department_id")] + RANGE_PARAMS)
        },
        "/reports/overview": {"get": _op("Reports", "System overview")},
        "/reports/export": {
            "get": _op("Reports", "Export records", errors=(400, 401, 403),
                       params=[_query("format")] + RECORD_FILTERS)
        },
        "/protected/dashboard": {"get": _op("Protected", "Welcome payload with uptime", errors=(401,))},
    }

    paths.update(_crud_paths("/departments", "Departments", "department", "department_id"))
    paths.update(_crud_paths("/groups", "Groups", "group", "group_id"))
    paths.update(_crud_paths("/doctors", "Doctors", "doctor", "doctor_id"))
    paths.update(_crud_paths("/students", "Students", "student", "student_id"))

    error_descriptions = {
        400: "Validation error",
        401: "Authentication required or failed",
        403: "Forbidden",
        404: "Not found",
        409: "Conflict",
        423: "Account locked"
    }

    return {
        "openapi": "3.0.0",
        "info": {
            "title": "University Attendance API",
            "description": "QR-based attendance tracking for university groups",
            "version": "1.0.0"
        },
        "servers": [{"url": "/api", "description": "Current server"}],
        "security": [{"bearerAuth": []}],
        "components": {
            "securitySchemes": {
                "bearerAuth": {"type": "http", "scheme": "bearer", "bearerFormat": "JWT"}
            },
            "schemas": {
                "User": {
                    "type": "object",
                    "properties": {
                        "id": {"type": "integer"},
                        "email": {"type": "string", "format": "email"},
                        "name": {"type": "string"},
                        "role": {"type": "string", "enum": ROLES},
                        "is_active": {"type": "boolean"}
                    }
                },
                "AttendanceRecord": {
                    "type": "object",
                    "properties": {
                        "id": {"type": "integer"},
                        "student_id": {"type": "integer"},
                        "group_id": {"type": "integer"},
                        "doctor_id": {"type": "integer"},
                        "lecture_date": {"type": "string", "format": "date-time"},
                        "status": {"type": "string", "enum": STATUSES},
                        "recorded_by": {"type": "string", "enum": ["qr_scan", "manual", "admin"]},
                        "notes": {"type": "string", "nullable": True}
                    }
                },
                "Error": {
                    "type": "object",
                    "properties": {
                        "success": {"type": "boolean", "default": False},
                        "message": {"type": "string"},
                        "errors": {
                            "type": "array",
                            "items": {
                                "type": "object",
                                "properties": {"field": {"type": "string"}, "message": {"type": "string"}}
                            }
                        }
                    }
                },
                "Success": {
                    "type": "object",
                    "properties": {
                        "success": {"type": "boolean", "default": True},
                        "message": {"type": "string"},
                        "data": {"type": "object"},
                        "pagination": {"type": "object"}
                    }
                }
            },
            "responses": {
                f"E{code}": {
                    "description": description,
                    "content": {"application/json": {"schema": {"$ref": "#/components/schemas/Error"}}}
                }
                for code, description in error_descriptions.items()
            }
        },
        "paths": paths
    }
