from cutflow.services.email_service import send_email
from cutflow.utils.template import render_template


def send_user_email(template, subject, user, **ctx):
    html = render_template(template, user=user, **ctx)
    return send_email(to=user.email, subject=subject, html=html)
