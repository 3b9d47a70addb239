"""Execution orchestrator: runs one correction from payload to transformed result."""

from __future__ import annotations

import asyncio
import copy
import logging
import re
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable

from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    wait_fixed,
)

from ..auth import AuthStrategyRegistry, RequestDraft
from ..exceptions import (
    ConfigurationError,
    ContractViolation,
    RequestContractViolation,
    ResponseContractViolation,
    TokenAcquisitionError,
    TransportError,
)
from ..mapping.models import (
    AuthConfig,
    MappingConfig,
    ResilienceConfig,
    TargetApiConfig,
    TransformSpec,
)
from ..mapping.pipeline import MISSING, get_value, is_path_expression, render_scalar, set_value
from ..mapping.transformer import Transformer
from .audit import AuditRecord, AuditSink
from .context import CallOverrides, ExecutionContext, PipelineStage
from .schema import SchemaValidator
from .transport import HttpTransport, TransportResponse

logger = logging.getLogger(__name__)

WRITE_METHODS = frozenset({"POST", "PUT", "PATCH"})
RETRYABLE_ERRORS = (TransportError, TokenAcquisitionError)


@dataclass
class CallResult:
    """Outcome of one remote call (a single correction or one workflow step)."""

    result: Any
    url: str
    method: str
    status_code: int | None
    request_body: Any


class CorrectorEngine:
    """Runs the RESOLVE_PARAMS -> ... -> VALIDATE_RESPONSE pipeline for a mapping."""

    def __init__(
        self,
        transformer: Transformer | None = None,
        auth_registry: AuthStrategyRegistry | None = None,
        transport: HttpTransport | None = None,
        schema_validator: SchemaValidator | None = None,
        audit_sink: AuditSink | None = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        self.transformer = transformer or Transformer()
        self.auth_registry = auth_registry or AuthStrategyRegistry()
        self.transport = transport or HttpTransport()
        self.schema_validator = schema_validator or SchemaValidator()
        self.audit_sink = audit_sink
        self._sleep = sleep

    async def execute(
        self,
        mapping: MappingConfig,
        payload: Any,
        overrides: CallOverrides | None = None,
    ) -> Any:
        """Execute one correction.

        Failures after the request has been prepared are turned into a regular
        result when the mapping has an ``errorMapping``; everything else is
        raised to the caller.
        """
        started = time.perf_counter()
        context = ExecutionContext.create(mapping, payload, overrides)
        audit = AuditRecord.for_mapping(mapping, payload, context.operation)
        logger.info("Executing correction for mapping: %s", mapping.id)

        try:
            if mapping.steps:
                call = await self._execute_workflow(mapping, payload, context)
            else:
                call = await self._execute_single_call(
                    context,
                    source=payload,
                    target_api=mapping.target_api,
                    method=context.method,
                    query_params=context.query_params,
                    headers=context.headers,
                    request_mapping=mapping.request_mapping,
                    response_mapping=mapping.response_mapping,
                    auth_config=mapping.auth_config,
                    custom_transforms=mapping.custom_transforms,
                    request_schema=mapping.request_schema,
                )

            if mapping.response_schema:
                context.advance(PipelineStage.VALIDATE_RESPONSE)
                self._check_contract(mapping.response_schema, call.result, ResponseContractViolation)

            context.advance(PipelineStage.DONE)
            audit.url, audit.method, audit.status_code = call.url, call.method, call.status_code
            audit.response_payload = call.result
            return call.result
        except Exception as exc:
            logger.warning("Execution failed at %s: %s", context.stage.name, exc)
            audit.status_code = getattr(exc, "status_code", None)
            audit.error = self._error_source(exc)
            if mapping.error_mapping is not None and context.reached_network:
                logger.debug("Applying error mapping...")
                mapped = self.transformer.transform(
                    audit.error, mapping.error_mapping, mapping.custom_transforms
                )
                audit.response_payload = mapped
                return mapped
            raise
        finally:
            audit.latency_ms = int((time.perf_counter() - started) * 1000)
            if context.field_errors:
                audit.metadata["fieldErrors"] = [e.__dict__ for e in context.field_errors]
            await self._emit_audit(audit)

    async def _execute_workflow(
        self,
        mapping: MappingConfig,
        payload: Any,
        context: ExecutionContext,
    ) -> CallResult:
        """Run each step in order; a step may read anything earlier steps published."""
        if mapping.request_schema:
            context.advance(PipelineStage.VALIDATE_REQUEST)
            self._check_contract(mapping.request_schema, payload, RequestContractViolation)

        last: CallResult | None = None
        total = len(mapping.steps or [])
        for index, step in enumerate(mapping.steps or [], start=1):
            logger.info("Workflow %s step %d/%d: %s", mapping.id, index, total, step.name)
            last = await self._execute_single_call(
                context,
                source=context.shared,
                target_api=step.target_api,
                method=step.target_api.method,
                query_params=dict(step.target_api.query_params),
                headers={**step.target_api.headers, **context.extra_headers},
                request_mapping=step.request_mapping,
                response_mapping=step.response_mapping,
                auth_config=step.auth_config or mapping.auth_config,
                custom_transforms=mapping.custom_transforms,
            )
            if step.save_result_to_context_as:
                set_value(context.shared, step.save_result_to_context_as, copy.deepcopy(last.result))

        if last is None:
            raise ConfigurationError(f"Mapping {mapping.id} defines no workflow steps")
        return last

    async def _execute_single_call(
        self,
        context: ExecutionContext,
        *,
        source: Any,
        target_api: TargetApiConfig,
        method: str,
        query_params: dict[str, Any],
        headers: dict[str, str],
        request_mapping: TransformSpec | None,
        response_mapping: TransformSpec | None,
        auth_config: AuthConfig | None,
        custom_transforms: dict[str, str],
        request_schema: dict[str, Any] | None = None,
    ) -> CallResult:
        context.advance(PipelineStage.RESOLVE_PARAMS)
        url = self.resolve_url(target_api, source)
        params = self.resolve_query_params(query_params, source)

        if request_schema:
            context.advance(PipelineStage.VALIDATE_REQUEST)
            self._check_contract(request_schema, source, RequestContractViolation)

        context.advance(PipelineStage.TRANSFORM_REQUEST)
        body = self._transform_request(source, request_mapping, custom_transforms, method, context)

        context.advance(PipelineStage.AUTHENTICATE)
        effective_api = target_api.model_copy(update={"url": url, "method": method})
        response = await self._invoke_with_retry(effective_api, body, headers, params, auth_config, context)

        context.advance(PipelineStage.TRANSFORM_RESPONSE)
        if response_mapping is None:
            result = response.body
        else:
            result = self.transformer.transform(
                response.body, response_mapping, custom_transforms, context.field_errors
            )
        return CallResult(
            result=result,
            url=url,
            method=method,
            status_code=response.status_code,
            request_body=body,
        )

    def _transform_request(
        self,
        source: Any,
        spec: TransformSpec | None,
        custom_transforms: dict[str, str],
        method: str,
        context: ExecutionContext,
    ) -> Any:
        if spec is None or spec.is_passthrough:
            body = source
        else:
            body = self.transformer.transform(source, spec, custom_transforms, context.field_errors)
        if body is None and method.upper() in WRITE_METHODS:
            body = {}
        return body

    async def _invoke_with_retry(
        self,
        target_api: TargetApiConfig,
        body: Any,
        headers: dict[str, str],
        params: dict[str, Any],
        auth_config: AuthConfig | None,
        context: ExecutionContext,
    ) -> TransportResponse:
        """Authenticate and call; transport and token failures are retried with a fixed delay."""
        retrying = self._create_retrying(target_api.resilience)
        async for attempt in retrying:
            with attempt:
                draft = RequestDraft(headers=dict(headers), params=dict(params))
                if auth_config is not None:
                    provider = self.auth_registry.get_provider(auth_config.auth_type)
                    draft = await provider.inject(draft, auth_config, context)

                context.advance(PipelineStage.INVOKE)
                effective_api = target_api.model_copy(update={"query_params": draft.params})
                return await self.transport.call(effective_api, body, draft.headers)

    def _create_retrying(self, resilience: ResilienceConfig) -> AsyncRetrying:
        """``retryCount`` retries after the first attempt, ``retryDelayMs`` apart."""
        return AsyncRetrying(
            stop=stop_after_attempt(resilience.retry_count + 1),
            wait=wait_fixed(resilience.retry_delay_ms / 1000),
            retry=retry_if_exception_type(RETRYABLE_ERRORS),
            before_sleep=before_sleep_log(logger, logging.WARNING),
            reraise=True,
            sleep=self._sleep,
        )

    @staticmethod
    def resolve_query_params(params: dict[str, Any], source: Any) -> dict[str, Any]:
        """Resolve ``$``-prefixed values against ``source``; unresolved ones are dropped."""
        resolved: dict[str, Any] = {}
        for key, value in params.items():
            if is_path_expression(value):
                found = get_value(source, value, MISSING)
                if found is MISSING or found is None:
                    logger.debug("Query param '%s' unresolved (%s), omitted", key, value)
                    continue
                resolved[key] = found
            else:
                resolved[key] = value
        return resolved

    @staticmethod
    def resolve_url(target_api: TargetApiConfig, source: Any) -> str:
        """Substitute ``:name`` and ``{name}`` placeholders from ``pathParams``."""
        url = target_api.url
        for placeholder, path in target_api.path_params.items():
            value = get_value(source, path, MISSING) if is_path_expression(path) else path
            if value is MISSING or value is None:
                logger.debug("Path param '%s' unresolved (%s), left as is", placeholder, path)
                continue
            text = render_scalar(value)
            url = re.sub(rf":{re.escape(placeholder)}(?![A-Za-z0-9_])", lambda _: text, url)
            url = url.replace(f"{{{placeholder}}}", text)
        return url

    def _check_contract(
        self,
        schema: dict[str, Any],
        value: Any,
        error_cls: type[ContractViolation],
    ) -> None:
        result = self.schema_validator.validate(schema, value)
        if not result.valid:
            raise error_cls(result.errors)

    @staticmethod
    def _error_source(exc: Exception) -> dict[str, Any]:
        """Remote error body when there is one, else ``{message, status}``."""
        body = getattr(exc, "body", None)
        if isinstance(body, dict) and body:
            return copy.deepcopy(body)
        return {
            "message": str(exc) or exc.__class__.__name__,
            "status": getattr(exc, "status_code", None) or "UNKNOWN",
        }

    async def _emit_audit(self, record: AuditRecord) -> None:
        if self.audit_sink is None:
            return
        try:
            await self.audit_sink.record(record)
        except Exception as exc:
            logger.warning("Audit sink failed for %s: %s", record.mapping_id, exc)
