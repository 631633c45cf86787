from .accounts import Profile, UserSession, LoginEvent
from .catalog import Product
from .customers import Customer
from .orders import Order, OrderItem, OrderStatusHistory
from .enquiries import Enquiry, EnquiryFollowUp, LandingLead
from .billing import SubscriptionPlan, Subscription, PaymentTransaction, WalletTransaction, Referral
from .communications import Notification, EmailLog

__all__ = [
    'Profile', 'UserSession', 'LoginEvent',
    'Product',
    'Customer',
    'Order', 'OrderItem', 'OrderStatusHistory',
    'Enquiry', 'EnquiryFollowUp', 'LandingLead',
    'SubscriptionPlan', 'Subscription', 'PaymentTransaction', 'WalletTransaction', 'Referral',
    'Notification', 'EmailLog',
]
