import asyncio
import sys

from dotenv import load_dotenv
from loguru import logger

from kalina_assistant.app_config import load_json_config, parse_app_config, resolve_runtime_env
from kalina_assistant.bootstrap import bootstrap_runtime
from kalina_assistant.nav_links import render_for_terminal


async def main() -> None:
    load_dotenv()

    config = load_json_config()
    app = parse_app_config(config)
    env = resolve_runtime_env(app.provider_name)
    resume_session_id = str(config.get("ResumeSessionId", "")).strip() or None

    runtime = await bootstrap_runtime(app, env, session_id=resume_session_id)
    assistant = runtime.assistant

    if not env.provider_api_key and runtime.key_pool is None:
        logger.error(f"{env.provider_env_var} is not set and the API key pool is disabled.")
        await runtime.close()
        sys.exit(1)

    try:
        history = await assistant.initialize_session()

        print("kalina-assistant (type 'exit' to quit, '/help' for commands)")
        print(f"Provider: {app.provider_name} ({app.model})")
        print("Tools:")
        for t in runtime.tools:
            print(f"  - {t.name}")
        if not runtime.tools:
            print("  (none; set the Supabase variables to enable analytics)")
        print(f"Session: {assistant.session_id}")
        if env.provider_api_key:
            print(f"Credential: {env.provider_env_var}")
        elif runtime.key_pool is not None:
            print(f"Credential: key pool ({len(runtime.key_pool.list_keys())} key(s), see /keys)")
        if runtime.log_descriptions:
            print(f"Logging: {', '.join(runtime.log_descriptions)}")
        print()
        if len(history) == 1:
            text = "".join(p.get("text", "") for p in history[0].get("parts", []))
            print(f"assistant> {render_for_terminal(text)}\n")
        else:
            print(f"Resumed {len(history)} turn(s); use /session resume {assistant.session_id} to replay them\n")

        while True:
            try:
                user_input = input("you> ")
            except (EOFError, KeyboardInterrupt):
                break

            trimmed = user_input.strip()

            if trimmed in ("exit", "quit"):
                break

            if not trimmed:
                continue

            try:
                print()  # newline before spinner
                await assistant.run(trimmed)
                print("\n")
            except Exception as ex:
                logger.error(f"Unhandled error: {ex}")
    finally:
        await runtime.close()


def run() -> None:
    asyncio.run(main())


if __name__ == "__main__":
    run()
