"""결제사 API 공통 HTTP 호출"""
from typing import Any, Dict, Optional

import httpx
from loguru import logger

from domain.exceptions import ProviderUnavailableError


async def post_json(
    url: str,
    provider: str,
    *,
    content: str,
    headers: Dict[str, str],
    timeout: float,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> Dict[str, Any]:
    """
    JSON POST 요청

    서명 대상 문자열과 실제 전송 바이트가 같아야 하므로 본문은 미리 직렬화해서 받는다.
    네트워크/HTTP 오류는 ProviderUnavailableError로 바꿔 던진다.
    """
    async with httpx.AsyncClient(transport=transport, timeout=timeout) as client:
        try:
            response = await client.post(url, content=content.encode("utf-8"), headers=headers)
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPStatusError as e:
            logger.error(f"{provider} API 오류: {e.response.status_code} {e.response.text[:500]}")
            raise ProviderUnavailableError(
                f"{provider} API error: {e.response.status_code}"
            )
        except httpx.RequestError as e:
            logger.error(f"{provider} API 요청 실패: {url} - {e}")
            raise ProviderUnavailableError(f"{provider} request failed: {e}")
        except ValueError:
            logger.error(f"{provider} API 응답 파싱 실패: {response.text[:500]}")
            raise ProviderUnavailableError(f"{provider} returned invalid JSON")

    if not isinstance(data, dict):
        raise ProviderUnavailableError(f"{provider} returned unexpected payload")
    return data
