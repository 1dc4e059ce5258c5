from cutflow.models.user import User, UserRole
from cutflow.models.order import Order, OrderPaymentStatus, PayoutStatus
from cutflow.models.order_application import (
    OrderApplication,
    ApplicationStatus,
    DepositStatus,
)
from cutflow.models.wallet_transaction import WalletTransaction, WalletTransactionType
from cutflow.models.notifications import Notification, NotificationType
from cutflow.models.payment import (
    Payment,
    PaymentStatus,
    PaymentGatewayName,
    PaymentKind,
)
from cutflow.models.youtube_account import YouTubeAccount
from cutflow.models.order_event import OrderEvent

# add ALL models here
