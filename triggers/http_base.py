"""
HTTP Trigger Base Class.

Abstract base class for the orchestrator's Azure Functions HTTP triggers,
providing consistent request/response handling and the mapping from
orchestrator exceptions to status codes.

Error Mapping:
    LockContentionError, IllegalRolloutActionError  -> 409
    ValueError (incl. ValidationError)              -> 400
    PermissionError                                 -> 403
    FileNotFoundError, ResourceNotFoundError        -> 404
    anything else                                   -> 500

Exports:
    BaseHttpTrigger: Base class for HTTP triggers
    OrchestratorTrigger: Base class for triggers acting on the orchestrator
"""

from abc import ABC, abstractmethod
from typing import Dict, Any, Optional, List
import uuid
import json
import traceback
from datetime import datetime, timezone

import azure.functions as func

from core.errors import classify_exception, is_retryable
from exceptions import IllegalRolloutActionError, LockContentionError, ResourceNotFoundError
from util_logger import LoggerFactory, ComponentType


class BaseHttpTrigger(ABC):
    """
    Abstract base class for Azure Functions HTTP triggers.

    Subclasses implement process_request() and raise; handle_request()
    turns the result or the exception into a JSON response.
    """

    def __init__(self, trigger_name: str):
        """
        Args:
            trigger_name: Name of the trigger for logging (e.g., "cron_releases")
        """
        self.trigger_name = trigger_name
        self.logger = LoggerFactory.create_logger(ComponentType.TRIGGER, f"HttpTrigger.{trigger_name}")

    # ========================================================================
    # ABSTRACT METHODS - Must be implemented by concrete triggers
    # ========================================================================

    @abstractmethod
    def process_request(self, req: func.HttpRequest) -> Dict[str, Any]:
        """
        Process the HTTP request and return response data.

        Returns:
            Dictionary to be serialized as JSON response
        """
        pass

    @abstractmethod
    def get_allowed_methods(self) -> List[str]:
        pass

    # ========================================================================
    # CONCRETE INFRASTRUCTURE METHODS
    # ========================================================================

    def handle_request(self, req: func.HttpRequest) -> func.HttpResponse:
        """
        Main entry point for HTTP request handling.

        Args:
            req: Azure Functions HTTP request object

        Returns:
            Azure Functions HTTP response with JSON content
        """
        request_id = self._generate_request_id()

        self.logger.info(
            f"🌐 [{self.trigger_name}] Request {request_id} started: "
            f"{req.method} {req.url}"
        )

        try:
            if req.method not in self.get_allowed_methods():
                return self._create_error_response(
                    error="Method not allowed",
                    message=f"Method {req.method} not allowed. Allowed: {', '.join(self.get_allowed_methods())}",
                    status_code=405,
                    request_id=request_id
                )

            response_data = self.process_request(req)
            response = self._create_success_response(response_data, request_id)

            self.logger.info(
                f"✅ [{self.trigger_name}] Request {request_id} completed successfully"
            )
            return response

        except (LockContentionError, IllegalRolloutActionError) as e:
            # Checked before ValueError: IllegalRolloutActionError is a ValidationError
            self.logger.warning(f"⚠️ [{self.trigger_name}] Conflict: {e}")
            return self._create_error_response(
                error="Conflict",
                message=str(e),
                status_code=409,
                request_id=request_id,
                exc=e
            )

        except ValueError as e:
            self.logger.warning(f"❌ [{self.trigger_name}] Client error: {e}")
            return self._create_error_response(
                error="Bad request",
                message=str(e),
                status_code=400,
                request_id=request_id,
                exc=e
            )

        except PermissionError as e:
            self.logger.warning(f"🚫 [{self.trigger_name}] Permission denied: {e}")
            return self._create_error_response(
                error="Forbidden",
                message=str(e),
                status_code=403,
                request_id=request_id,
                exc=e
            )

        except (FileNotFoundError, ResourceNotFoundError) as e:
            self.logger.info(f"🔍 [{self.trigger_name}] Not found: {e}")
            return self._create_error_response(
                error="Not found",
                message=str(e),
                status_code=404,
                request_id=request_id,
                exc=e
            )

        except Exception as e:
            self.logger.error(f"💥 [{self.trigger_name}] Internal error: {e}")
            self.logger.debug(f"📍 Full traceback: {traceback.format_exc()}")
            return self._create_error_response(
                error="Internal server error",
                message=str(e),
                status_code=500,
                request_id=request_id,
                exc=e,
                include_debug_info=True
            )

    # ========================================================================
    # UTILITY METHODS FOR SUBCLASSES
    # ========================================================================

    def extract_path_params(self, req: func.HttpRequest, required_params: List[str]) -> Dict[str, str]:
        """
        Extract and validate path parameters.

        Raises:
            ValueError: If required parameters are missing
        """
        params = {}
        missing_params = []

        for param_name in required_params:
            value = req.route_params.get(param_name)
            if not value:
                missing_params.append(param_name)
            else:
                params[param_name] = value

        if missing_params:
            raise ValueError(f"Missing required path parameters: {', '.join(missing_params)}")

        return params

    def extract_json_body(self, req: func.HttpRequest, required: bool = True) -> Optional[Dict[str, Any]]:
        """
        Extract and parse JSON request body.

        Returns:
            Parsed JSON object, or None when the body is optional and empty

        Raises:
            ValueError: Body required but missing, invalid JSON, or not an object
        """
        if not req.get_body():
            if required:
                raise ValueError("Request body is required")
            return None

        try:
            body = req.get_json()
        except ValueError as e:
            raise ValueError(f"Invalid JSON in request body: {e}")

        if not isinstance(body, dict):
            raise ValueError("Request body must be a JSON object")
        return body

    def validate_required_fields(self, data: Dict[str, Any], required_fields: List[str]) -> None:
        """
        Raises:
            ValueError: If required fields are missing
        """
        missing_fields = [field for field in required_fields if field not in data or data[field] is None]

        if missing_fields:
            raise ValueError(f"Missing required fields: {', '.join(missing_fields)}")

    # ========================================================================
    # PRIVATE INFRASTRUCTURE METHODS
    # ========================================================================

    def _generate_request_id(self) -> str:
        return str(uuid.uuid4())[:8]

    def _create_success_response(self, data: Dict[str, Any], request_id: str) -> func.HttpResponse:
        response_data = {
            **data,
            "request_id": request_id,
            "timestamp": datetime.now(timezone.utc).isoformat()
        }

        return func.HttpResponse(
            json.dumps(response_data, default=str),
            status_code=200,
            mimetype="application/json",
            headers={"X-Request-ID": request_id}
        )

    def _create_error_response(self, error: str, message: str, status_code: int,
                               request_id: str, include_debug_info: bool = False,
                               exc: Optional[BaseException] = None) -> func.HttpResponse:
        response_data = {
            "error": error,
            "message": message,
            "request_id": request_id,
            "timestamp": datetime.now(timezone.utc).isoformat()
        }

        if exc is not None:
            error_code = classify_exception(exc)
            response_data["error_code"] = error_code.value
            response_data["retryable"] = is_retryable(error_code)

        if include_debug_info:
            response_data["debug"] = {
                "trigger_name": self.trigger_name,
            }

        return func.HttpResponse(
            json.dumps(response_data),
            status_code=status_code,
            mimetype="application/json",
            headers={"X-Request-ID": request_id}
        )


# ============================================================================
# SPECIALIZED BASE CLASSES
# ============================================================================

class OrchestratorTrigger(BaseHttpTrigger):
    """
    Base class for triggers that act on the orchestrator.

    The orchestrator is passed in by function_app.py, which builds it once
    per process.
    """

    def __init__(self, trigger_name: str, orchestrator):
        super().__init__(trigger_name)
        self.orchestrator = orchestrator

    @staticmethod
    def dump(model) -> Dict[str, Any]:
        """Serialize a pydantic record for a response body."""
        return model.model_dump(mode="json")


__all__ = ['BaseHttpTrigger', 'OrchestratorTrigger']
