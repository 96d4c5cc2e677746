import asyncio
import logging

from langchain.chat_models import init_chat_model
from langgraph.prebuilt import create_react_agent

from config.settings import settings
from src.agents.utils.tools import ALL_TOOLS, signal_classifier
from src.services.signal_monitor import create_signal_monitor
from src.utils.database import db_manager

logger = logging.getLogger(__name__)


def create_signal_assistant():
    # Initialize Google Gemini model
    llm = init_chat_model(f"google_genai:{settings.default_model}")

    # Create react agent (returns compiled graph)
    agent = create_react_agent(
        llm,
        ALL_TOOLS,
        prompt="""You are an expert crypto trading assistant backed by a technical signal model.

        You have access to tools to:
        - Get the latest market quote for a crypto symbol
        - Train the signal model on recent daily history for a symbol
        - Predict a buy, hold or sell signal for a symbol from its latest quote
        - List, add, update and remove a user's crypto holdings
        - List currently trending crypto symbols

        Held symbols are scanned automatically every few minutes and the user is
        notified when a buy or sell signal appears.

        When users ask whether to buy or sell, use predict_signal and explain the
        indicators behind the decision (SMA, RSI, MACD, volatility, momentum,
        trend strength). If the prediction is "unknown", suggest training the
        model first with train_model.

        Be concise, helpful, and data-driven in your responses. Never present a
        signal as financial advice.
        """
    )

    return agent


async def run_signal_chatbot():
    # Ensure database tables exist
    await db_manager.create_tables()

    # Scan held symbols in the background while chatting
    monitor = create_signal_monitor(classifier=signal_classifier)
    await monitor.start()

    agent = create_signal_assistant()

    try:
        print("🤖 Crypto Signal Assistant Ready!")
        print("I can help you with:")
        print("• Check the latest price of a coin (e.g., 'What is BTC trading at?')")
        print("• Train the signal model (e.g., 'Train the model on ETH')")
        print("• Predict buy/hold/sell signals (e.g., 'Should I sell SOL?')")
        print("• Manage your holdings (e.g., 'Add $500 of BTC for user alice')")
        print("Type 'quit' to exit.\n")

        while True:
            try:
                user_input = await asyncio.to_thread(input, "User: ")
                if user_input.lower() in ["q", "quit", "exit"]:
                    print("Exiting chat...")
                    break

                result = await agent.ainvoke({
                    "messages": [{"role": "user", "content": user_input}]
                })

                if result["messages"]:
                    last_message = result["messages"][-1]
                    if hasattr(last_message, 'content'):
                        print("Assistant:", last_message.content)
                    else:
                        print("Assistant:", str(last_message))

            except (KeyboardInterrupt, EOFError):
                print("\nExiting chat...")
                break
            except Exception as e:
                print(f"Error during chat: {e}")
                logger.error(f"Chat error: {e}")

    except Exception as e:
        logger.error(f"Signal assistant failed: {e}")
        raise
    finally:
        await monitor.stop()
        await db_manager.close()


if __name__ == "__main__":
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[
            logging.StreamHandler(),
            logging.FileHandler(settings.log_file)
        ]
    )
    asyncio.run(run_signal_chatbot())
