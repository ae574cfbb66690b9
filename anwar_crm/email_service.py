"""
SendGrid email service for the Anwar sales CRM
- Gateway / system alerts (immediate)
- System health reports (daily)
- Schema migration reports (on deploy)
"""

import logging
from datetime import datetime, timezone
from typing import Dict, Any, Optional
from sendgrid import SendGridAPIClient
from sendgrid.helpers.mail import Mail, Email, To, Content

from anwar_crm import config

logger = logging.getLogger("email_service")

STATUS_COLORS = {
    "Healthy": "#16A34A",
    "Warning": "#D97706",
    "Critical": "#DC2626",
}


def _page(title: str, color: str, body: str) -> str:
    return f"""
    <!DOCTYPE html>
    <html>
    <head>
        <style>
            body {{ font-family: Arial, sans-serif; margin: 0; padding: 20px; background-color: #f5f5f5; }}
            .container {{ max-width: 640px; margin: 0 auto; background: white; border-radius: 8px; overflow: hidden; }}
            .header {{ background: {color}; color: white; padding: 20px; text-align: center; }}
            .header h1 {{ margin: 0; font-size: 22px; }}
            .content {{ padding: 24px; }}
            .box {{ background: #F3F4F6; padding: 12px 15px; border-radius: 4px; margin: 12px 0; }}
            .footer {{ background: #F9FAFB; padding: 15px; text-align: center; font-size: 12px; color: #6B7280; }}
            td {{ padding: 4px 8px; border-bottom: 1px solid #E5E7EB; }}
        </style>
    </head>
    <body>
        <div class="container">
            <div class="header"><h1>{title}</h1></div>
            <div class="content">
                <p style="color: #9CA3AF;">{datetime.now(timezone.utc).strftime('%Y-%m-%d %H:%M:%S')} UTC</p>
                {body}
            </div>
            <div class="footer">Anwar Sales CRM - automated notification</div>
        </div>
    </body>
    </html>
    """


def _items(values) -> str:
    return "<ul>" + "".join(f"<li>{v}</li>" for v in values) + "</ul>"


class EmailService:
    """Central email sender"""

    def __init__(self):
        self.api_key = config.SENDGRID_API_KEY
        self.sender = config.SENDER_EMAIL
        self.admin_recipient = config.ADMIN_EMAIL

    def _send_email(self, to_email: str, subject: str, html_content: str) -> bool:
        """Send one email through SendGrid"""
        if not self.api_key:
            logger.error("SENDGRID_API_KEY not configured")
            return False

        try:
            message = Mail(
                from_email=Email(self.sender, "Anwar Sales CRM"),
                to_emails=To(to_email),
                subject=subject,
                html_content=Content("text/html", html_content)
            )

            sg = SendGridAPIClient(self.api_key)
            response = sg.send(message)

            if response.status_code in [200, 202]:
                logger.info(f"Email sent to {to_email}: {subject}")
                return True
            logger.error(f"Email send error: {response.status_code}")
            return False

        except Exception as e:
            logger.error(f"Email send exception: {str(e)}")
            return False

    # ==================== ALERTS ====================

    def send_gateway_alert(self, alert_type: str, message: str, details: Optional[Dict[str, Any]] = None) -> bool:
        """
        Immediate alert to the admin.
        Types: GATEWAY_DISCONNECTED, GATEWAY_UNAUTHORIZED, GATEWAY_ERROR
        """
        details_html = ""
        if details:
            details_html = '<div class="box"><strong>Details:</strong>' + _items(
                f"<strong>{k}:</strong> {v}" for k, v in details.items()
            ) + "</div>"

        body = (
            f'<div class="box"><strong>Type:</strong> {alert_type}<br>'
            f"<strong>Message:</strong> {message}</div>"
            f"{details_html}"
            f"<p><strong>Action required:</strong> check the WhatsApp gateway connection.</p>"
        )
        return self._send_email(
            self.admin_recipient,
            f"🚨 WhatsApp gateway alert - {alert_type}",
            _page("🚨 Gateway alert", STATUS_COLORS["Critical"], body),
        )

    # ==================== HEALTH REPORT ====================

    def send_health_report(self, report: Dict[str, Any], to_email: Optional[str] = None) -> bool:
        overall = report.get("overall_status", "Warning")
        rows = "".join(
            f"<tr><td>{name}</td><td style=\"color: {STATUS_COLORS.get(c.get('status'), '#111')}\">"
            f"{c.get('status')}</td><td>{len(c.get('issues', []))}</td></tr>"
            for name, c in report.get("components", {}).items()
        )
        issues = [
            f"<strong>{name}:</strong> {issue}"
            for name, c in report.get("components", {}).items()
            for issue in c.get("issues", [])
        ]
        body = (
            f"<p>Overall status: <strong>{overall}</strong></p>"
            f"<table><tr><td><strong>Component</strong></td><td><strong>Status</strong></td>"
            f"<td><strong>Issues</strong></td></tr>{rows}</table>"
            + (f'<div class="box"><strong>Issues</strong>{_items(issues)}</div>' if issues else "")
            + (
                f'<div class="box"><strong>Recommendations</strong>{_items(report["recommendations"])}</div>'
                if report.get("recommendations") else ""
            )
        )
        return self._send_email(
            to_email or self.admin_recipient,
            f"System health report - {overall}",
            _page(f"📊 System health: {overall}", STATUS_COLORS.get(overall, "#3B82F6"), body),
        )

    # ==================== MIGRATION REPORT ====================

    def send_migration_report(self, result: Dict[str, Any], to_email: Optional[str] = None) -> bool:
        success = result.get("success")
        steps = [
            f"{'✅' if step.get('success') else '❌'} {step.get('step')}"
            for step in result.get("steps", [])
        ]
        body = (
            f"<p>Schema migration deployment has been completed.</p>"
            f"<p>Status: <strong>{'SUCCESS' if success else 'FAILED'}</strong><br>"
            f"Timestamp: {result.get('timestamp')}</p>"
            f'<div class="box"><strong>Step summary</strong>{_items(steps) if steps else "<p>No steps run</p>"}</div>'
            + (f'<div class="box"><strong>Warnings</strong>{_items(result["warnings"])}</div>' if result.get("warnings") else "")
            + (f'<div class="box"><strong>Errors</strong>{_items(result["errors"])}</div>' if result.get("errors") else "")
            + ("<p><strong>The backup was restored.</strong></p>" if result.get("rolled_back") else "")
            + "<p>Please review the system and ensure all functionality is working as expected.</p>"
        )
        subject = (
            "✅ Schema Migration Deployment Successful" if success
            else "❌ Schema Migration Deployment Failed"
        )
        color = STATUS_COLORS["Healthy"] if success else STATUS_COLORS["Critical"]
        return self._send_email(to_email or self.admin_recipient, subject, _page(subject, color, body))


# Singleton
email_service = EmailService()
