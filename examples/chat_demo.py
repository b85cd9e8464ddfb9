"""Minimal command-line demonstration of a ThinkLy exchange."""

from thinkly_core import create_chat_service

if __name__ == "__main__":
    service = create_chat_service()
    question = "用三句话介绍一下你自己"
    reply = service.send_message(question)
    print("User:", question)
    print(f"{service.store.selected_model}:", reply["content"] if reply else "(busy)")
