# Tool definitions for the voice agent's function calling.
# Each tool maps onto a POST /tools/<name> endpoint.

CHECK_AVAILABILITY_TOOL = {
    "type": "function",
    "function": {
        "name": "check-availability",
        "description": "List open appointment slots on a specific date.",
        "parameters": {
            "type": "object",
            "properties": {
                "date": {
                    "type": "string",
                    "description": "The day to check, in ISO 8601 format YYYY-MM-DD (e.g., '2024-05-22')."
                },
                "duration_minutes": {
                    "type": "integer",
                    "description": "Length of the appointment in minutes."
                },
                "timezone": {
                    "type": "string",
                    "description": "IANA timezone the slot times are returned in (e.g., 'America/Toronto'). Defaults to the business's zone."
                }
            },
            "required": ["date", "duration_minutes"]
        }
    }
}

BOOK_APPOINTMENT_TOOL = {
    "type": "function",
    "function": {
        "name": "book-appointment",
        "description": "Book one of the slots returned by check-availability.",
        "parameters": {
            "type": "object",
            "properties": {
                "start_time": {"type": "string", "description": "Start, ISO 8601 with offset."},
                "end_time": {"type": "string", "description": "End, ISO 8601 with offset."},
                "timezone": {"type": "string", "description": "IANA timezone for times given without an offset."},
                "customer_name": {"type": "string", "description": "The name of the customer."},
                "customer_email": {"type": "string", "description": "Customer email, if given."},
                "customer_phone": {"type": "string", "description": "Customer phone number."},
                "title": {"type": "string", "description": "Short appointment title, e.g. the service booked."},
                "notes": {"type": "string", "description": "Anything the customer wants noted."},
                "idempotency_key": {
                    "type": "string",
                    "description": "Reuse the same value (e.g. the call id) when retrying the same booking."
                }
            },
            "required": ["start_time", "end_time", "idempotency_key"]
        }
    }
}

CANCEL_APPOINTMENT_TOOL = {
    "type": "function",
    "function": {
        "name": "cancel-appointment",
        "description": "Cancel an existing appointment found with find-appointment.",
        "parameters": {
            "type": "object",
            "properties": {
                "appointment_id": {"type": "integer"},
                "idempotency_key": {"type": "string"}
            },
            "required": ["appointment_id", "idempotency_key"]
        }
    }
}

RESCHEDULE_APPOINTMENT_TOOL = {
    "type": "function",
    "function": {
        "name": "reschedule-appointment",
        "description": "Move an existing appointment to a new free slot.",
        "parameters": {
            "type": "object",
            "properties": {
                "appointment_id": {"type": "integer"},
                "new_start_time": {"type": "string", "description": "New start, ISO 8601 with offset."},
                "new_end_time": {"type": "string", "description": "New end, ISO 8601 with offset."},
                "timezone": {"type": "string", "description": "IANA timezone for times given without an offset."},
                "idempotency_key": {"type": "string"}
            },
            "required": ["appointment_id", "new_start_time", "new_end_time", "idempotency_key"]
        }
    }
}

FIND_APPOINTMENT_TOOL = {
    "type": "function",
    "function": {
        "name": "find-appointment",
        "description": "Look up a caller's upcoming appointments by phone or email.",
        "parameters": {
            "type": "object",
            "properties": {
                "customer_phone": {"type": "string"},
                "customer_email": {"type": "string"},
                "from_date": {"type": "string", "description": "YYYY-MM-DD"},
                "to_date": {"type": "string", "description": "YYYY-MM-DD, inclusive"},
                "limit": {"type": "integer"}
            },
            "required": []
        }
    }
}

ALL_TOOLS = [
    CHECK_AVAILABILITY_TOOL,
    BOOK_APPOINTMENT_TOOL,
    CANCEL_APPOINTMENT_TOOL,
    RESCHEDULE_APPOINTMENT_TOOL,
    FIND_APPOINTMENT_TOOL,
]
