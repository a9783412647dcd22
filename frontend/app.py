import streamlit as st

from frontend.stream_client import BACKEND_URL, generate_reply


def show_image(msg: dict) -> None:
    col1, col2, col3 = st.columns([1, 2, 1])
    with col2:
        st.image(msg["image"], use_container_width=True)
    st.markdown(f"🔗 [Open original]({msg['image_url']})")
    st.download_button(
        "⬇️ Download",
        data=msg["download_data"],
        file_name=f"z_image_{msg['timestamp']}.png",
        mime="image/png",
        key=f"download_{msg['timestamp']}",
    )


# ==========================
# Config
# ==========================
st.set_page_config(
    page_title="Z-Image Generator",
    page_icon="🎨",
    layout="wide"
)

st.title("🎨 Z-Image Generator")
st.caption("Text-to-image through the ModelScope inference API")

# ==========================
# State
# ==========================
if "messages" not in st.session_state:
    st.session_state["messages"] = [{
        "role": "assistant",
        "content": "Describe the image you want and I will generate it! 💬",
    }]

# ==========================
# Sidebar
# ==========================
with st.sidebar:
    st.header("⚙️ Settings")

    if st.button("🗑️ Clear chat", use_container_width=True):
        st.session_state["messages"] = [{
            "role": "assistant",
            "content": "History cleared. Let's start again! 💬",
        }]
        st.rerun()

    num_images = len([m for m in st.session_state["messages"] if "image" in m])
    st.markdown(f"**🖼️ Images generated:** {num_images}")

    st.markdown("---")
    st.markdown("### 💡 Examples")
    st.code("a realistic photo of a cat")
    st.code("a watercolor lighthouse at dawn")

    st.markdown("---")
    st.write("🔗 Backend:", BACKEND_URL)

# ==========================
# Chat history
# ==========================
for msg in st.session_state["messages"]:
    with st.chat_message(msg["role"]):
        st.markdown(msg["content"])
        if "image" in msg:
            show_image(msg)

# ==========================
# Prompt input
# ==========================
user_prompt = st.chat_input("💭 Describe the image...")

if user_prompt:
    st.session_state["messages"].append({
        "role": "user",
        "content": user_prompt
    })

    with st.chat_message("assistant"):
        status_container = st.empty()
        status_container.info("⏳ Connecting...")

        reply = generate_reply(
            user_prompt,
            on_status=lambda message: status_container.info(f"🎨 {message}"),
        )
        level = reply.pop("level")
        getattr(status_container, level)(reply["content"])
        st.session_state["messages"].append(reply)

    st.rerun()
