from fastapi import FastAPI, Request, Depends, BackgroundTasks, Query
from fastapi.middleware.cors import CORSMiddleware
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse, PlainTextResponse
from pydantic import BaseModel
from contextlib import asynccontextmanager
from decimal import Decimal
from functools import lru_cache
from typing import Optional
import logging

from bot.config.settings import (
    CREDENTIALS_FILE,
    CREDENTIALS_SOURCE,
    DEFAULT_ACCOUNT_ID,
    LOG_LEVEL,
    WHATSAPP_VERIFY_TOKEN
)
from bot.errors import ConfigurationError
from bot.models.trade import ChatMessage, TradeIntent
from bot.models.whatsapp import WebhookPayload
from bot.services.binance import BinanceService
from bot.services.credentials import EnvCredentialProvider, FileCredentialProvider
from bot.services.pairs import SupportedAssetsValidator
from bot.services.trading import TradeService
from bot.services.whatsapp import WhatsAppNotifier
from app.handlers import register_error_handlers

logging.basicConfig(
    level=getattr(logging, LOG_LEVEL, logging.INFO),
    format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
)
logger = logging.getLogger(__name__)

CHAT_FAILURE = "Desculpe, ocorreu um erro ao processar sua mensagem."


@lru_cache(maxsize=1)
def get_credential_provider():
    if CREDENTIALS_SOURCE == "env":
        return EnvCredentialProvider()
    if CREDENTIALS_SOURCE == "file":
        return FileCredentialProvider(CREDENTIALS_FILE)
    raise ConfigurationError(f"Unknown CREDENTIALS_SOURCE: {CREDENTIALS_SOURCE}")


@lru_cache(maxsize=1)
def get_trade_service() -> TradeService:
    return TradeService(
        exchange=BinanceService(),
        credentials=get_credential_provider(),
        pairs=SupportedAssetsValidator()
    )


@lru_cache(maxsize=1)
def get_notifier() -> WhatsAppNotifier:
    return WhatsAppNotifier()


def get_verify_token() -> Optional[str]:
    return WHATSAPP_VERIFY_TOKEN


@asynccontextmanager
async def lifespan(app: FastAPI):
    # missing credentials are fatal at startup
    provider = get_credential_provider()
    if isinstance(provider, EnvCredentialProvider):
        provider.validate()
    else:
        provider.load()
    logger.info(f"Trade bot started (credentials from {CREDENTIALS_SOURCE})")
    yield


app = FastAPI(lifespan=lifespan)

# middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_error_handlers(app)


class BuyRequest(BaseModel):
    crypto: str
    amount: float


@app.get("/balance")
def balance(service: TradeService = Depends(get_trade_service)):
    credentials = service.credentials_for(DEFAULT_ACCOUNT_ID)
    balances = service.fiat_balances(credentials)
    if not balances:
        return {"message": "no balances"}
    return {"fiat_balances": [{"asset": b.asset, "amount": float(b.free)} for b in balances]}


@app.post("/buy")
def buy(req: BuyRequest, service: TradeService = Depends(get_trade_service)):
    intent = TradeIntent(
        base_asset=req.crypto.strip().upper(),
        notional=Decimal(str(req.amount)),
        quote_asset=service.quote_asset
    )
    # reject bad input before touching credentials
    intent = service.validate(intent)
    credentials = service.credentials_for(DEFAULT_ACCOUNT_ID)
    order = service.buy(credentials, intent)
    return {"order_details": order.payload}


async def process_chat_message(service: TradeService, notifier: WhatsAppNotifier, message: ChatMessage):
    """Run the command off the event loop, then reply to the sender"""
    try:
        reply = await run_in_threadpool(service.handle_message, message)
        text = reply.text
        logger.info(f"Chat command from {message.sender_id} ended as {reply.outcome.value}")
    except Exception as e:
        logger.error(f"Error processing message from {message.sender_id}: {e}", exc_info=True)
        text = CHAT_FAILURE
    await notifier.send(message.sender_id, text)


@app.post("/whatsapp/webhook")
async def whatsapp_webhook(
    request: Request,
    background_tasks: BackgroundTasks,
    service: TradeService = Depends(get_trade_service),
    notifier: WhatsAppNotifier = Depends(get_notifier)
):
    logger.info("Receiving WhatsApp webhook")
    try:
        payload = WebhookPayload.model_validate(await request.json())
    except ValueError as e:
        logger.warning(f"Invalid webhook payload: {e}")
        return JSONResponse(status_code=400, content={"error": "invalid payload"})

    messages = payload.chat_messages()
    if not messages:
        return {"status": "no messages"}

    for message in messages:
        background_tasks.add_task(process_chat_message, service, notifier, message)
    return {"status": "processed"}


@app.get("/whatsapp/webhook")
async def verify_webhook(
    mode: Optional[str] = Query(None, alias="hub.mode"),
    challenge: Optional[str] = Query(None, alias="hub.challenge"),
    verify_token: Optional[str] = Query(None, alias="hub.verify_token"),
    expected_token: Optional[str] = Depends(get_verify_token)
):
    if mode == "subscribe" and expected_token and verify_token == expected_token:
        return PlainTextResponse(challenge or "")
    return PlainTextResponse("Forbidden", status_code=403)


@app.get("/health")
@app.get("/health-check")
async def health_check():
    return {"status": 200}
