from files_gateway.gateway.router import HandlerResult, MessageGateway, Topic

__all__ = ["HandlerResult", "MessageGateway", "Topic"]
