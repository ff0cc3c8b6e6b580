from __future__ import annotations

from datetime import datetime
from html import escape
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from storefront.services.reconciler import OrderItemSnapshot, OrderSnapshot

PAYMENT_METHOD_LABELS_PT = {
    "pix": "PIX",
    "card": "Cartão de crédito",
}

STATUS_LABELS_PT = {
    "pending": "Pendente",
    "confirmed": "Confirmado",
    "shipped": "Enviado",
    "delivered": "Entregue",
    "cancelled": "Cancelado",
}

TRACKING_URL = "https://www.linkcorreios.com.br/?id={code}"


def _fmt_money(value_cents: int) -> str:
    value = (value_cents or 0) / 100
    s = f"{value:,.2f}"
    return s.replace(",", "X").replace(".", ",").replace("X", ".")


def _fmt_dt(value: datetime | None) -> str:
    if not value:
        return "-"
    return value.strftime("%d/%m/%Y %H:%M")


def format_money(value_cents: int) -> str:
    return f"R$ {_fmt_money(value_cents)}"


def _payment_label(snapshot: OrderSnapshot) -> str:
    label = PAYMENT_METHOD_LABELS_PT.get(snapshot.payment_method, snapshot.payment_method)
    if snapshot.payment_method == "card" and snapshot.installments > 1:
        return f"{label} ({snapshot.installments}x)"
    return label


def _item_label(item: OrderItemSnapshot) -> str:
    variant = f" ({item.variant})" if item.variant else ""
    return f"{item.name}{variant}"


def format_items_text(items: tuple[OrderItemSnapshot, ...]) -> str:
    if not items:
        return "- (sem itens)"
    return "\n".join(
        f"- {_item_label(item)} {item.quantity} x {format_money(item.unit_price_cents)}" for item in items
    )


def _totals_lines(snapshot: OrderSnapshot) -> list[str]:
    lines = [f"Subtotal: {format_money(snapshot.subtotal_cents)}"]
    if snapshot.discount_cents > 0:
        coupon = f" ({snapshot.coupon_code})" if snapshot.coupon_code else ""
        lines.append(f"Cupom{coupon}: -{format_money(snapshot.discount_cents)}")
    lines.append(
        f"Frete: {format_money(snapshot.shipping_cents)}" if snapshot.shipping_cents > 0 else "Frete: Grátis"
    )
    if snapshot.payment_discount_cents > 0:
        lines.append(f"Desconto PIX: -{format_money(snapshot.payment_discount_cents)}")
    lines.append(f"Total: {format_money(snapshot.total_cents)}")
    return lines


def format_telegram_message(snapshot: OrderSnapshot) -> str:
    return (
        f"*Pagamento confirmado*\n"
        f"*Pedido:* `{snapshot.order_number}`\n"
        f"*Cliente:* {snapshot.customer_name}\n"
        f"*Telefone:* `{snapshot.customer_phone or '-'}`\n"
        f"*Data:* {_fmt_dt(snapshot.created_at)}\n\n"
        f"*Endereço:*\n{snapshot.address_text}\n\n"
        f"*Itens:*\n{format_items_text(snapshot.items)}\n\n"
        f"*Pagamento:* {_payment_label(snapshot)}\n"
        + "\n".join(_totals_lines(snapshot))
    )


def customer_email_subject(snapshot: OrderSnapshot, store_name: str) -> str:
    return f"{store_name} - Pagamento confirmado do pedido {snapshot.order_number}"


def admin_email_subject(snapshot: OrderSnapshot) -> str:
    return f"Novo pedido pago {snapshot.order_number} - {format_money(snapshot.total_cents)}"


def _html_lines(lines: list[str]) -> str:
    return "<br>".join(escape(line) for line in lines)


def format_customer_email(snapshot: OrderSnapshot, store_name: str) -> str:
    items = [f"{_item_label(i)} - {i.quantity} x {format_money(i.unit_price_cents)}" for i in snapshot.items]
    return (
        f"<h2>Olá, {escape(snapshot.customer_name)}!</h2>"
        f"<p>Recebemos o pagamento do seu pedido <strong>{escape(snapshot.order_number)}</strong>. "
        f"Agora ele segue para separação e envio.</p>"
        f"<p>{_html_lines(items)}</p>"
        f"<p>{_html_lines(_totals_lines(snapshot))}</p>"
        f"<p>Forma de pagamento: {escape(_payment_label(snapshot))}</p>"
        f"<p>Endereço de entrega:<br>{_html_lines(snapshot.address_text.splitlines())}</p>"
        f"<p>Obrigado por comprar na {escape(store_name)}!</p>"
    )


def format_admin_email(snapshot: OrderSnapshot) -> str:
    lines = [
        f"Pedido: {snapshot.order_number}",
        f"Cliente: {snapshot.customer_name} <{snapshot.customer_email}>",
        f"Telefone: {snapshot.customer_phone or '-'}",
        f"Pagamento: {_payment_label(snapshot)}",
        "",
        *format_items_text(snapshot.items).splitlines(),
        "",
        *_totals_lines(snapshot),
        "",
        *snapshot.address_text.splitlines(),
    ]
    return f"<h2>Pagamento confirmado</h2><p>{_html_lines(lines)}</p>"


def _status_label(status: str) -> str:
    return STATUS_LABELS_PT.get(status, status)


def _status_text(snapshot: OrderSnapshot) -> str:
    if snapshot.status == "shipped":
        if snapshot.tracking_code:
            return f"Seu pedido foi enviado! Use o código {snapshot.tracking_code} para rastrear."
        return "Seu pedido foi enviado! Em breve você receberá em casa."
    if snapshot.status == "delivered":
        return "Seu pedido foi entregue! Esperamos que você ame suas novas semijoias."
    if snapshot.status == "cancelled":
        return "Seu pedido foi cancelado. Se tiver dúvidas, entre em contato conosco."
    if snapshot.status == "confirmed":
        return "Seu pagamento foi confirmado! Estamos preparando seu pedido."
    return "O status do seu pedido foi atualizado."


def status_update_email_subject(snapshot: OrderSnapshot) -> str:
    return f"Pedido {snapshot.order_number} - {_status_label(snapshot.status)}"


def format_status_update_email(snapshot: OrderSnapshot, store_name: str) -> str:
    html = (
        f"<h2>Olá, {escape(snapshot.customer_name)}!</h2>"
        f"<p>O status do seu pedido <strong>{escape(snapshot.order_number)}</strong> foi atualizado para "
        f"<strong>{escape(_status_label(snapshot.status))}</strong>.</p>"
        f"<p>{escape(_status_text(snapshot))}</p>"
    )
    if snapshot.status == "shipped" and snapshot.tracking_code:
        url = TRACKING_URL.format(code=snapshot.tracking_code)
        html += f'<p><a href="{escape(url)}">Rastrear nos Correios</a></p>'
    return html + f"<p>Obrigado por comprar na {escape(store_name)}!</p>"
