"""결제사 어댑터 등록"""
from typing import Dict, Mapping, Optional

import httpx

from config import Settings, settings as default_settings
from domain.exceptions import UnknownProviderError
from application.ports.payment_provider import PaymentProvider
from infrastructure.payment.cryptomus_gateway import CryptomusGateway
from infrastructure.payment.iyzico_gateway import IyzicoGateway
from infrastructure.payment.weepay_gateway import WeepayGateway


def build_providers(
    config: Settings = default_settings,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> Dict[str, PaymentProvider]:
    gateways = (
        CryptomusGateway(config, transport),
        WeepayGateway(config, transport),
        IyzicoGateway(config, transport),
    )
    return {gateway.name: gateway for gateway in gateways}


def get_provider(providers: Mapping[str, PaymentProvider], name: str) -> PaymentProvider:
    try:
        return providers[name.lower()]
    except KeyError:
        raise UnknownProviderError(name)
