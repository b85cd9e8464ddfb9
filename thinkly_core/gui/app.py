import tkinter as tk
from tkinter import messagebox, scrolledtext
from tkinter import ttk
import threading

from thinkly_core.api.service import ChatService, create_chat_service
from thinkly_core.domain.exceptions import BusinessError


THEMES = {
    False: {"bg": "#ffffff", "fg": "#1f1f1f", "user": "#1a73e8", "assistant": "#34a853", "error": "#d93025"},
    True: {"bg": "#1a1a2e", "fg": "#e8e8f0", "user": "#8ab4f8", "assistant": "#81c995", "error": "#f28b82"},
}


class LoginDialog:
    def __init__(self, root, service: ChatService, on_success):
        self.service = service
        self.on_success = on_success
        self.win = tk.Toplevel(root)
        self.win.title("ThinkLy 登录")
        self.win.transient(root)
        tk.Label(self.win, text="用户名").grid(row=0, column=0, sticky=tk.W)
        self.user = tk.Entry(self.win)
        self.user.grid(row=0, column=1)
        tk.Label(self.win, text="密码").grid(row=1, column=0, sticky=tk.W)
        self.password = tk.Entry(self.win, show="*")
        self.password.grid(row=1, column=1)
        self.password.bind("<Return>", lambda e: self.submit())
        self.error = tk.Label(self.win, text="", fg="#d93025")
        self.error.grid(row=2, column=0, columnspan=2)
        tk.Button(self.win, text="登录", command=self.submit).grid(row=3, column=1, sticky=tk.E)
        self.user.focus_set()

    def submit(self):
        res = self.service.login(self.user.get().strip(), self.password.get())
        if res.success:
            self.win.destroy()
            self.on_success()
        else:
            self.error.config(text=res.error)


class App:
    def __init__(self, root, service: ChatService):
        self.root = root
        self.service = service
        self.root.title("ThinkLy")
        top = tk.Frame(root)
        top.pack(fill=tk.X)
        tk.Label(top, text="模型").pack(side=tk.LEFT)
        self.models = {m["name"]: m["id"] for m in service.available_models()}
        self.model_box = ttk.Combobox(top, values=list(self.models), state="readonly")
        self.model_box.pack(side=tk.LEFT)
        self.model_box.bind("<<ComboboxSelected>>", self.on_select_model)
        self.clear_btn = tk.Button(top, text="清空", command=self.on_clear)
        self.clear_btn.pack(side=tk.LEFT)
        tk.Button(top, text="仪表盘", command=self.on_dashboard).pack(side=tk.LEFT)
        tk.Button(top, text="主题", command=self.on_toggle_theme).pack(side=tk.LEFT)
        tk.Button(top, text="退出登录", command=self.on_logout).pack(side=tk.RIGHT)
        self.chat = scrolledtext.ScrolledText(root, width=90, height=24)
        self.chat.pack(fill=tk.BOTH, expand=True)
        row = tk.Frame(root)
        row.pack(fill=tk.X)
        self.entry = tk.Entry(row)
        self.entry.pack(side=tk.LEFT, fill=tk.X, expand=True)
        self.entry.bind("<Return>", self.on_send_event)
        self.send_btn = tk.Button(row, text="发送", command=self.on_send)
        self.send_btn.pack(side=tk.LEFT)
        self.status = tk.Label(root, text="准备就绪", anchor=tk.W)
        self.status.pack(fill=tk.X)
        self.sync_model_box()
        self.apply_theme()
        self.render()

    def sync_model_box(self):
        current = self.service.store.selected_model
        for name, mid in self.models.items():
            if mid == current:
                self.model_box.set(name)

    def apply_theme(self):
        colors = THEMES[self.service.theme.is_dark_mode]
        self.chat.config(bg=colors["bg"], fg=colors["fg"], insertbackground=colors["fg"])
        for role in ("user", "assistant", "error"):
            self.chat.tag_config(role, foreground=colors[role])

    def render(self):
        self.chat.delete(1.0, tk.END)
        for m in self.service.messages():
            label = {"user": "用户", "assistant": "助手", "error": "错误"}[m.role]
            self.chat.insert(tk.END, f"{label} [{m.model}]: {m.content}\n", m.role)
            if m.usage:
                self.chat.insert(tk.END, f"  tokens: {m.usage.total_tokens}\n", m.role)
        self.chat.see(tk.END)
        state = self.service.state()
        if state["busy"]:
            self.status.config(text="发送中...")
        elif state["last_error"]:
            self.status.config(text=state["last_error"])
        else:
            self.status.config(text=f"消息: {state['message_count']}")

    def on_select_model(self, event):
        mid = self.models.get(self.model_box.get())
        if mid:
            self.service.select_model(mid)
            self.render()

    def on_clear(self):
        if not self.service.clear_history():
            self.status.config(text="发送中，暂不能清空")
            return
        self.render()

    def on_toggle_theme(self):
        self.service.toggle_theme()
        self.apply_theme()

    def on_logout(self):
        self.service.logout()
        self.root.withdraw()
        LoginDialog(self.root, self.service, self.root.deiconify)

    def on_dashboard(self):
        stats = self.service.dashboard_stats()
        lines = [
            f"总消息: {stats['totalMessages']}",
            f"用户: {stats['userMessages']}  助手: {stats['assistantMessages']}  错误: {stats['errorMessages']}",
            f"估算 tokens: {stats['totalTokens']}",
            f"平均响应时间: {stats['averageResponseTime']}s",
            f"模型使用: {stats['modelUsage']}",
            f"消息类型: {stats['messageTypes']}",
        ]
        active = [f"{b['hour']} {b['messages']}" for b in stats["hourlyActivity"] if b["messages"]]
        if active:
            lines.append("活跃时段: " + ", ".join(active))
        messagebox.showinfo("仪表盘", "\n".join(lines), parent=self.root)

    def on_send(self):
        if self.service.store.busy:
            return
        text = self.entry.get().strip()
        if not text:
            return
        self.entry.delete(0, tk.END)
        self.send_btn.config(state=tk.DISABLED)
        self.clear_btn.config(state=tk.DISABLED)

        def worker():
            error = None
            try:
                self.service.send_message(text)
            except BusinessError as e:
                error = e
            finally:
                # 其他异常也要恢复按钮
                self.root.after(0, lambda: self.on_response(error))

        threading.Thread(target=worker, daemon=True).start()
        self.root.after(50, self.render)

    def on_send_event(self, event):
        self.on_send()
        return "break"

    def on_response(self, err):
        self.send_btn.config(state=tk.NORMAL)
        self.clear_btn.config(state=tk.NORMAL)
        self.render()
        if err:
            self.status.config(text=f"错误: {err.message}")


def main():
    service = create_chat_service()
    root = tk.Tk()
    app = App(root, service)
    if not service.auth.is_authenticated:
        root.withdraw()
        LoginDialog(root, service, root.deiconify)
    root.mainloop()
    return app


if __name__ == "__main__":
    main()
