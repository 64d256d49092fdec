from flask_login import LoginManager

from api_client import SkyNestAPI
from payment_service import PaymentGatewayService

login_manager = LoginManager()
api = SkyNestAPI()
gateway_service = PaymentGatewayService(api)
